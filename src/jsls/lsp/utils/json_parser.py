"""
JSON parsing utilities for JSON Schema LSP.

This module turns the text of a JSON document into a tree of positioned
``JsonNode`` objects addressed by JSON Pointer. Features use it to find the
node under the cursor and to map validation errors back to ranges.

Position tracking reuses the YAML composer: JSON is a subset of YAML's flow
style, and ``yaml.compose`` records a start and end mark for every node
without constructing any Python objects.

String literals are where the two languages part ways. YAML caps the length
of a key, rejects control characters and escapes that JSON accepts, and
breaks lines on a few characters JSON treats as ordinary text. Every literal
is therefore emptied to ``""`` before composing, and node offsets are mapped
back onto the original text afterwards.

Positions are reported in UTF-16 code units, the LSP default encoding.
"""

import json
import logging
import re
from bisect import bisect_right
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml
from lsprotocol import types
from pygls.workspace import PositionCodec

from .models import JsonNode, JsonType, append_pointer


logger = logging.getLogger(__name__)

_PLAIN_LITERALS = {"true": (JsonType.BOOLEAN, True), "false": (JsonType.BOOLEAN, False), "null": (JsonType.NULL, None)}

# LSP line terminators
_LINE_BREAK = re.compile(r"\r\n|\r|\n")

# JSON insignificant whitespace
_WHITESPACE = re.compile(r"[ \t\r\n]*")

# One complete string literal, never spanning lines
_STRING_LITERAL = re.compile(r'"(?:[^"\\\r\n]|\\.)*"')

# Characters the YAML reader rejects or reads as line breaks
_YAML_UNSAFE = re.compile(r"[^\n\r\x20-\x7E\xA0-\u2027\u202A-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")

_EMPTY_LITERAL = '""'

_codec = PositionCodec()


class JsonParsingError(Exception):
    """Raised when a document's text is not valid JSON."""

    def __init__(self, message: str, offset: int = 0, line: int = 0, character: int = 0):
        self.message = message
        self.offset = offset
        self.position = types.Position(line=line, character=character)
        super().__init__(message)


class JsonDocument:
    """
    Parsed JSON document with positional information.

    ``value`` holds the decoded JSON when the text is valid. ``root`` holds the
    node tree whenever the text can be composed, which also covers some
    documents that are mid-edit and not yet strict JSON.
    """

    def __init__(self, text: str, document_uri: Optional[str] = None):
        """
        Parse ``text``.

        Args:
            text: Document content
            document_uri: Optional URI of the document for error reporting
        """
        self.text = text
        self.document_uri = document_uri or "unknown"
        self.value: Any = None
        self.error: Optional[JsonParsingError] = None
        self.root: Optional[JsonNode] = None
        self._nodes: Dict[str, JsonNode] = {}
        self._line_starts = [0] + [match.end() for match in _LINE_BREAK.finditer(text)]

        self._decode()
        self._compose()

    @classmethod
    def from_text_document(cls, document) -> "JsonDocument":
        """Parse a pygls ``TextDocument``."""
        return cls(document.source, document.uri)

    @property
    def is_valid(self) -> bool:
        """Check whether the text decoded as strict JSON."""
        return self.error is None

    @property
    def is_empty(self) -> bool:
        """Check whether the document has no content at all."""
        return not self.text.strip()

    @property
    def dialect_uri(self) -> Optional[str]:
        """Get the root ``$schema`` value, if it is a string."""
        node = self.get("/$schema")
        if node is not None and node.type == JsonType.STRING:
            return node.value
        return None

    def get(self, pointer: str) -> Optional[JsonNode]:
        """Get the value node at a JSON Pointer."""
        return self._nodes.get(pointer)

    def position_at(self, offset: int) -> types.Position:
        """Convert a character offset into an LSP position counted in UTF-16 units."""
        offset = max(0, min(offset, len(self.text)))
        line = bisect_right(self._line_starts, offset) - 1
        line_start = self._line_starts[line]
        return types.Position(line=line, character=_codec.client_num_units(self.text[line_start:offset]))

    def offset_at(self, position: types.Position) -> int:
        """
        Convert an LSP position counted in UTF-16 units into a character offset.

        Characters past the end of a line clamp to the end of that line, and
        lines past the end of the text clamp to the end of the text.
        """
        if position.line >= len(self._line_starts):
            return len(self.text)

        line_text = self._line_text(position.line)
        character = min(position.character, _codec.client_num_units(line_text))
        column = _codec.position_from_client_units(
            [line_text], types.Position(line=0, character=character)
        ).character
        return self._line_starts[position.line] + column

    def find_node_at_offset(self, offset: int) -> Optional[JsonNode]:
        """
        Find the innermost node containing a character offset.

        Args:
            offset: 0-based character offset into the text

        Returns:
            The deepest node whose span contains ``offset``, or None
        """
        if self.root is None:
            return None
        return _find_node_at_offset(self.root, offset)

    def all_nodes(self) -> Iterator[JsonNode]:
        """Iterate over every node in document order."""
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def _line_text(self, line: int) -> str:
        start = self._line_starts[line]
        if line + 1 < len(self._line_starts):
            return _LINE_BREAK.sub("", self.text[start:self._line_starts[line + 1]])
        return self.text[start:]

    def _decode(self) -> None:
        try:
            self.value = json.loads(self.text)
        except json.JSONDecodeError as e:
            position = self.position_at(e.pos)
            self.error = JsonParsingError(e.msg, e.pos, position.line, position.character)
            logger.debug(f"JSON parsing error in {self.document_uri}: {e}")

    def _compose(self) -> None:
        if self.is_empty:
            return

        condensed = _CondensedText(self.text)
        try:
            node = yaml.compose(condensed.text)
        except yaml.YAMLError as e:
            if not self.is_valid:
                logger.debug(f"Unable to compose {self.document_uri}: {e}")
                return
            logger.warning(f"Unable to locate nodes in {self.document_uri}, reporting at the root: {e}")
            self._compose_root_only()
            return

        if node is None:
            return

        self.root = self._build(node, condensed, "", None)
        self._nodes[""] = self.root

    def _compose_root_only(self) -> None:
        """Give valid JSON a single root node spanning the whole value."""
        start = len(self.text) - len(self.text.lstrip())
        end = len(self.text.rstrip())
        json_type, value = _value_type(self.value)
        self.root = self._positioned("", json_type, value, start, end, None)
        self._nodes[""] = self.root

    def _build(self, node: yaml.Node, condensed: "_CondensedText", pointer: str,
               parent: Optional[JsonNode]) -> JsonNode:
        start, end = condensed.span(node)
        json_type, value = _node_type(node, condensed.literal_at(start))
        json_node = self._positioned(pointer, json_type, value, start, end, parent)

        if isinstance(node, yaml.MappingNode):
            for key_node, value_node in node.value:
                key_start, _ = condensed.span(key_node)
                _, value_end = condensed.span(value_node)
                if _is_missing(value_node):
                    # A member still waiting for its value reaches up to the next token
                    value_end = _WHITESPACE.match(self.text, value_end).end()
                _, key = _node_type(key_node, condensed.literal_at(key_start))
                property_pointer = append_pointer(pointer, str(key))
                property_node = self._positioned(
                    property_pointer, JsonType.PROPERTY, None, key_start, value_end, json_node,
                )
                key_child = self._build(key_node, condensed, property_pointer, property_node)
                member = self._build(value_node, condensed, property_pointer, property_node)
                property_node.children = [key_child, member]
                json_node.children.append(property_node)
                self._nodes[property_pointer] = member

        elif isinstance(node, yaml.SequenceNode):
            for index, item_node in enumerate(node.value):
                item_pointer = append_pointer(pointer, str(index))
                item = self._build(item_node, condensed, item_pointer, json_node)
                json_node.children.append(item)
                self._nodes[item_pointer] = item

        return json_node

    def _positioned(self, pointer, json_type, value, start, end, parent) -> JsonNode:
        return JsonNode(
            pointer=pointer,
            type=json_type,
            value=value,
            offset=start,
            length=end - start,
            start=self.position_at(start),
            end=self.position_at(end),
            parent=parent,
        )


class _CondensedText:
    """Document text with every string literal emptied, ready for the composer."""

    def __init__(self, text: str):
        self.literals: Dict[int, str] = {}
        # Condensed index just past each emptied literal, and the characters
        # removed up to that point
        self._ends: List[int] = []
        self._removed: List[int] = []

        parts = []
        last = 0
        removed = 0
        for match in _STRING_LITERAL.finditer(text):
            literal = match.group()
            parts.append(text[last:match.start()])
            parts.append(_EMPTY_LITERAL)
            self.literals[match.start()] = literal

            condensed_start = match.start() - removed
            removed += len(literal) - len(_EMPTY_LITERAL)
            self._ends.append(condensed_start + len(_EMPTY_LITERAL))
            self._removed.append(removed)
            last = match.end()
        parts.append(text[last:])

        # Outside literals these characters are only legal as whitespace (tabs)
        # or not at all, so blanking them moves no offsets
        self.text = _YAML_UNSAFE.sub(" ", "".join(parts))

    def original(self, index: int) -> int:
        """Map an index in the condensed text onto the original text."""
        i = bisect_right(self._ends, index) - 1
        return index + self._removed[i] if i >= 0 else index

    def span(self, node: yaml.Node) -> Tuple[int, int]:
        return self.original(node.start_mark.index), self.original(node.end_mark.index)

    def literal_at(self, offset: int) -> Optional[str]:
        return self.literals.get(offset)


def _node_type(node: yaml.Node, literal: Optional[str]):
    """Map a composed YAML node to a JSON type and scalar value."""
    if isinstance(node, yaml.MappingNode):
        return JsonType.OBJECT, None
    if isinstance(node, yaml.SequenceNode):
        return JsonType.ARRAY, None
    if literal is not None:
        return JsonType.STRING, _decode_literal(literal)
    if node.style in ('"', "'"):
        return JsonType.STRING, node.value
    if node.value in _PLAIN_LITERALS:
        return _PLAIN_LITERALS[node.value]
    try:
        number = json.loads(node.value)
    except ValueError:
        return JsonType.STRING, node.value
    if isinstance(number, (int, float)) and not isinstance(number, bool):
        return JsonType.NUMBER, number
    return JsonType.STRING, node.value


def _is_missing(node: yaml.Node) -> bool:
    """Check whether the composer filled in an empty value that has no text."""
    return (
        isinstance(node, yaml.ScalarNode)
        and node.style is None
        and node.value == ""
        and node.start_mark.index == node.end_mark.index
    )


def _decode_literal(literal: str) -> str:
    try:
        return json.loads(literal)
    except ValueError:
        # Mid-edit escapes such as "\u12"
        return literal[1:-1]


def _value_type(value: Any):
    """Map a decoded JSON value to a JSON type and scalar value."""
    if isinstance(value, dict):
        return JsonType.OBJECT, None
    if isinstance(value, list):
        return JsonType.ARRAY, None
    if isinstance(value, bool):
        return JsonType.BOOLEAN, value
    if value is None:
        return JsonType.NULL, None
    if isinstance(value, str):
        return JsonType.STRING, value
    return JsonType.NUMBER, value


def _find_node_at_offset(node: JsonNode, offset: int) -> Optional[JsonNode]:
    if not node.contains(offset):
        return None

    for child in node.children:
        if child.offset > offset:
            break
        hit = _find_node_at_offset(child, offset)
        if hit is not None:
            return hit

    return node
