"""
Data models for JSON Schema LSP.

This module defines the parsed-document structures shared by the features:
positioned JSON nodes addressed by JSON Pointer.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from lsprotocol import types


class JsonType:
    """
    Constants for the node types of a parsed JSON document.

    ``PROPERTY`` nodes wrap one object member; their two children are the key
    string and the value.
    """

    OBJECT = "object"
    ARRAY = "array"
    PROPERTY = "property"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"


@dataclass(eq=False)
class JsonNode:
    """
    One location in a parsed JSON document.

    Attributes:
        pointer: JSON Pointer of the value this node belongs to. A property
            node and its key share the pointer of the property's value.
        type: One of the ``JsonType`` constants
        value: Python value for scalars, None for containers
        offset: 0-based character offset of the first character
        length: Number of characters the node spans
        start: LSP position of the first character
        end: LSP position just past the last character
        children: Child nodes in document order
        parent: Enclosing node, None for the root
    """

    pointer: str
    type: str
    value: Any
    offset: int
    length: int
    start: types.Position
    end: types.Position
    children: List["JsonNode"] = field(default_factory=list)
    parent: Optional["JsonNode"] = None

    @property
    def range(self) -> types.Range:
        """LSP range covered by this node."""
        return types.Range(start=self.start, end=self.end)

    def contains(self, offset: int) -> bool:
        """Check whether ``offset`` falls inside this node."""
        return self.offset <= offset < self.offset + self.length

    def is_property_key(self) -> bool:
        """Check whether this node is the key of an object member."""
        return (
            self.parent is not None
            and self.parent.type == JsonType.PROPERTY
            and self.parent.children[0] is self
        )

    def __repr__(self) -> str:
        return f"JsonNode(pointer={self.pointer!r}, type={self.type!r}, offset={self.offset})"


def append_pointer(pointer: str, segment: str) -> str:
    """Append one reference token to a JSON Pointer, escaping it."""
    return f"{pointer}/{segment.replace('~', '~0').replace('/', '~1')}"


def pointer_segments(pointer: str) -> List[str]:
    """Split a JSON Pointer into its unescaped reference tokens."""
    if not pointer:
        return []
    return [
        segment.replace("~1", "/").replace("~0", "~")
        for segment in pointer.split("/")[1:]
    ]
