from __future__ import annotations

import json
from collections.abc import Iterable

from .extract import Declaration


def _alt_attribute(prompt: str) -> str:
    if '"' in prompt or "\n" in prompt or "{" in prompt:
        return f"alt={{{json.dumps(prompt, ensure_ascii=False)}}}"
    return f'alt="{prompt}"'


def render_img(decl: Declaration, src: str) -> str:
    """Plain ``<img>`` element replacing a declaration.

    Attribute order: src, width, height, replayed attributes, alt. ``alt`` is
    omitted when the declaration already carries one.
    """
    parts = [f'<img src="{src}"']
    if decl.width:
        parts.append(f"width={{{decl.width}}}")
    if decl.height:
        parts.append(f"height={{{decl.height}}}")
    parts.extend(decl.other_attributes)
    if "alt" not in decl.other_names:
        parts.append(_alt_attribute(decl.prompt))
    parts.append("/>")
    return " ".join(parts)


def rewrite_source(source: str, replacements: Iterable[tuple[Declaration, str]]) -> str:
    """Splice each declaration's byte range with its replacement text.

    A declaration nested inside another one's range is dropped with its parent.
    """
    data = source.encode("utf-8")
    ordered = sorted(replacements, key=lambda r: r[0].start_byte)

    kept: list[tuple[Declaration, str]] = []
    covered_until = -1
    for decl, text in ordered:
        if decl.start_byte < covered_until:
            continue
        kept.append((decl, text))
        covered_until = decl.end_byte

    for decl, text in reversed(kept):
        data = data[:decl.start_byte] + text.encode("utf-8") + data[decl.end_byte:]
    return data.decode("utf-8")
