"""Identity keys for image declarations.

The key is a 32-bit rolling hash (``h = h * 31 + c`` over UTF-16 code units,
wrapped to a signed 32-bit integer) of the declaration's semantic fields,
rendered in base 36. It must stay bit-compatible with keys produced by the
JavaScript runtime component, because artifact file names depend on it.
A 32-bit space has a real collision probability on large corpora; this is a
known limitation of the naming scheme.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Optional, Union

from .styles import NamedStyle, StyleError, StyleId, style_fields

StyleInput = Union[str, Mapping[str, Any], NamedStyle, StyleId, None]

KEY_SEPARATOR = "_"
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _string_pairs(data: Mapping[str, Any]) -> Iterator[tuple[str, str]]:
    for key, value in data.items():
        if isinstance(value, str):
            yield str(key), value
        elif isinstance(value, Mapping):
            yield from _string_pairs(value)


def normalize_style(style: StyleInput) -> Optional[str]:
    """Serialize a style to its canonical ``"key":"value"`` form, sorted by key.

    Only string-valued fields take part; nested mappings are flattened.
    Returns None when no field is present.

    Raises:
        StyleError: If a string input is not a serialized style object.
    """
    if style is None:
        return None
    if isinstance(style, (NamedStyle, StyleId)):
        data: Mapping[str, Any] = style_fields(style)
    elif isinstance(style, str):
        text = style.strip()
        if not text:
            return None
        if not text.startswith("{"):
            text = "{" + text + "}"
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StyleError(f"Invalid style format: {style!r}") from e
        if not isinstance(data, Mapping):
            raise StyleError(f"Invalid style format: {style!r}")
    else:
        data = style

    pairs = sorted(_string_pairs(data), key=lambda kv: kv[0])
    if not pairs:
        return None
    return ",".join(
        f"{json.dumps(k, ensure_ascii=False)}:{json.dumps(v, ensure_ascii=False)}"
        for k, v in pairs
    )


def hash32(text: str) -> int:
    data = text.encode("utf-16-le", errors="surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return h


def to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _segment(value: Any) -> str:
    if value is None or value == "" or value == 0:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def key_input(
    prompt: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    seed: Optional[str] = None,
    style: StyleInput = None,
) -> str:
    return KEY_SEPARATOR.join([
        prompt,
        _segment(width),
        _segment(height),
        _segment(seed),
        normalize_style(style) or "",
    ])


def derive_key(
    prompt: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    seed: Optional[str] = None,
    style: StyleInput = None,
) -> str:
    return to_base36(abs(hash32(key_input(prompt, width, height, seed, style))))


def check_cache(out_path: Path) -> bool:
    return out_path.is_file()
