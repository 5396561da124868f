"""Tree-sitter TSX extraction of image declarations from component source."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Optional

import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Node, Parser, Query, QueryCursor

from .cache import normalize_style

logger = logging.getLogger(__name__)

TSX_LANGUAGE = Language(ts_typescript.language_tsx())

DEFAULT_COMPONENT = "Imagined"
DEFAULT_STYLE_ATTRIBUTE = "recraftStyle"
# A plain ``style`` object naming these keys is an image style, not CSS.
INLINE_STYLE_ATTRIBUTE = "style"
IMAGE_STYLE_KEYS = frozenset({"style", "substyle", "style_id"})
IMG_ELEMENT = "img"

_ELEMENT_QUERY_SRC = """
(jsx_opening_element
  name: (_) @name) @element

(jsx_self_closing_element
  name: (_) @name) @element
"""


@dataclass(frozen=True)
class Declaration:
    prompt: str
    width: Optional[int]
    height: Optional[int]
    seed: Optional[str]
    style: Optional[str]
    other_attributes: tuple[str, ...]
    other_names: tuple[str, ...]
    start_byte: int
    end_byte: int
    text: str
    line: int


@dataclass
class ParseResult:
    declarations: list[Declaration] = field(default_factory=list)
    # literal ``src`` values of plain <img> elements, e.g. already rewritten declarations
    image_sources: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RawSource:
    """A style value that is not a literal; kept as its source text."""

    text: str


class _NotLiteral(Exception):
    pass


def _text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace")


def _unwrap(node: Optional[Node]) -> Optional[Node]:
    """Strip a JSX expression container and any parentheses around a value."""
    if node is not None and node.type == "jsx_expression":
        inner = [c for c in node.named_children if c.type != "comment"]
        node = inner[0] if len(inner) == 1 else None
    while node is not None and node.type == "parenthesized_expression":
        inner = [c for c in node.named_children if c.type != "comment"]
        node = inner[0] if len(inner) == 1 else None
    return node


_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
}


def _decode_escape(seq: str) -> str:
    body = seq[1:]
    if body.startswith("u{") and body.endswith("}"):
        return chr(int(body[2:-1], 16))
    if body[:1] in ("u", "x") and len(body) > 1:
        return chr(int(body[1:], 16))
    if body in ("\n", "\r\n", "\r", "\u2028", "\u2029"):
        return ""
    return _SIMPLE_ESCAPES.get(body, body)


def _string_value(node: Node) -> str:
    """Cooked value of a string or substitution-free template literal."""
    if not node.children:
        return _text(node)[1:-1]
    parts = []
    for child in node.children[1:-1]:
        if child.type == "template_substitution":
            raise _NotLiteral(_text(node))
        if child.type == "escape_sequence":
            parts.append(_decode_escape(_text(child)))
        elif child.type == "html_character_reference":
            parts.append(html.unescape(_text(child)))
        else:
            parts.append(_text(child))
    return "".join(parts)


def _number_value(node: Node) -> int | float:
    raw = _text(node).replace("_", "")
    try:
        return int(raw, 0)
    except ValueError:
        value = float(raw)
        return int(value) if value.is_integer() else value


def _literal(node: Optional[Node]) -> str | int | float:
    node = _unwrap(node)
    if node is None:
        raise _NotLiteral("")
    if node.type in ("string", "template_string"):
        return _string_value(node)
    if node.type == "number":
        return _number_value(node)
    raise _NotLiteral(_text(node))


def _text_literal(node: Optional[Node]) -> Optional[str]:
    try:
        value = _literal(node)
    except (_NotLiteral, ValueError):
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _dimension(node: Optional[Node]) -> Optional[int]:
    try:
        value = _literal(node)
    except (_NotLiteral, ValueError):
        return None
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return None
    if isinstance(value, float) or value <= 0:
        return None
    return value


def _object_value(node: Node) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for prop in node.named_children:
        if prop.type != "pair":
            continue
        key_node = prop.child_by_field_name("key")
        value_node = prop.child_by_field_name("value")
        if key_node is None or value_node is None:
            continue
        if key_node.type == "property_identifier":
            key = _text(key_node)
        elif key_node.type == "string":
            try:
                key = _string_value(key_node)
            except ValueError:
                continue
        else:
            continue

        value_node = _unwrap(value_node)
        if value_node is None:
            continue
        out[key] = _style_value(value_node)
    return out


def _style_value(node: Node) -> Any:
    try:
        if node.type == "string":
            return _string_value(node)
        if node.type == "number":
            return _number_value(node)
    except ValueError:
        return RawSource(_text(node))
    if node.type in ("true", "false"):
        return node.type == "true"
    if node.type == "object":
        return _object_value(node)
    return RawSource(_text(node))


def _attribute_parts(attr: Node) -> tuple[str, Optional[Node]]:
    named = [c for c in attr.named_children if c.type != "comment"]
    name = _text(named[0]) if named else ""
    value = named[1] if len(named) > 1 else None
    return name, value


def _is_image_style(value: Optional[Node]) -> bool:
    obj = _unwrap(value)
    if obj is None or obj.type != "object":
        return False
    return bool(IMAGE_STYLE_KEYS & _object_value(obj).keys())


def _image_src(element: Node) -> Optional[str]:
    for attr in element.named_children:
        if attr.type != "jsx_attribute":
            continue
        name, value = _attribute_parts(attr)
        if name == "src":
            return _text_literal(value)
    return None


def _first_error(node: Node) -> Optional[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


class DeclarationExtractor:
    def __init__(
        self,
        component: str = DEFAULT_COMPONENT,
        style_attribute: str = DEFAULT_STYLE_ATTRIBUTE,
    ) -> None:
        self.component = component
        self.style_attribute = style_attribute
        self._parser = Parser(TSX_LANGUAGE)
        self._query = Query(TSX_LANGUAGE, _ELEMENT_QUERY_SRC)

    def parse(self, source: str) -> ParseResult:
        """Parse ``source`` and collect declarations.

        A source with syntax errors yields no declarations and an error message.
        """
        try:
            source_bytes = source.encode("utf-8")
            tree = self._parser.parse(source_bytes)
        except (UnicodeEncodeError, ValueError) as e:
            return ParseResult(error=f"Failed to parse source: {e}")

        root = tree.root_node
        if root.has_error:
            bad = _first_error(root)
            if bad is not None:
                row, col = bad.start_point
                kind = "missing token" if bad.is_missing else "syntax error"
                return ParseResult(error=f"{kind} at line {row + 1}, column {col + 1}")
            return ParseResult(error="syntax error")

        result = ParseResult()
        cursor = QueryCursor(self._query)
        for _pattern_idx, captures in cursor.matches(root):
            elements = captures.get("element", [])
            names = captures.get("name", [])
            if not elements or not names:
                continue
            name = _text(names[0])
            if name == IMG_ELEMENT:
                src = _image_src(elements[0])
                if src:
                    result.image_sources.append(src)
                continue
            if name != self.component:
                continue
            decl = self._declaration(elements[0], source_bytes)
            if decl is not None:
                result.declarations.append(decl)

        result.declarations.sort(key=lambda d: d.start_byte)
        return result

    def extract(self, source: str) -> list[Declaration]:
        result = self.parse(source)
        if result.error:
            logger.warning(f"Error parsing file: {result.error}")
        return result.declarations

    def _declaration(self, element: Node, source_bytes: bytes) -> Optional[Declaration]:
        prompt: Optional[str] = None
        width: Optional[int] = None
        height: Optional[int] = None
        seed: Optional[str] = None
        style: Optional[str] = None
        inline_style: Optional[str] = None
        others: list[str] = []
        other_names: list[str] = []

        for attr in element.named_children:
            if attr.type == "jsx_expression":
                others.append(_text(attr))
                other_names.append("")
                continue
            if attr.type != "jsx_attribute":
                continue

            name, value = _attribute_parts(attr)
            if name == "prompt":
                prompt = _text_literal(value)
                if prompt is None:
                    return None
            elif name == "width":
                width = _dimension(value)
            elif name == "height":
                height = _dimension(value)
            elif name == "seed":
                seed = _text_literal(value)
            elif name == self.style_attribute:
                obj = _unwrap(value)
                if obj is not None and obj.type == "object":
                    style = normalize_style(_object_value(obj))
            elif name == INLINE_STYLE_ATTRIBUTE and _is_image_style(value):
                inline_style = normalize_style(_object_value(_unwrap(value)))
            else:
                others.append(_text(attr))
                other_names.append(name)

        if not prompt:
            return None
        if style is None:
            style = inline_style

        span = element
        if element.type == "jsx_opening_element" and element.parent is not None:
            span = element.parent

        return Declaration(
            prompt=prompt,
            width=width,
            height=height,
            seed=seed,
            style=style,
            other_attributes=tuple(others),
            other_names=tuple(other_names),
            start_byte=span.start_byte,
            end_byte=span.end_byte,
            text=source_bytes[span.start_byte:span.end_byte].decode("utf-8"),
            line=span.start_point[0] + 1,
        )


@lru_cache(maxsize=None)
def default_extractor() -> DeclarationExtractor:
    return DeclarationExtractor()


def extract(source: str) -> list[Declaration]:
    return default_extractor().extract(source)
