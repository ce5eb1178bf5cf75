"""
Schema structure: resources, anchors and references.

A parsed schema document is read as a tree of schema objects. Each one lives
in a schema resource, the nearest enclosing object with an identifier (or
the document itself), and may be addressed by a JSON Pointer fragment or by
an anchor name relative to that resource.

``SchemaIndex`` remembers which document defines each resource so a
reference can be followed from one document into another.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple
from urllib.parse import unquote, urldefrag, urljoin

from .documents import DocumentResolutionError, DocumentResolver
from .json_parser import JsonDocument
from .models import JsonNode, JsonType, pointer_segments


logger = logging.getLogger(__name__)

# Keywords whose value maps names to subschemas
SCHEMA_MAP_KEYWORDS = frozenset({
    "properties",
    "patternProperties",
    "$defs",
    "definitions",
    "dependentSchemas",
    "dependencies",
})

# Keywords whose value is plain data rather than a schema
DATA_KEYWORDS = frozenset({
    "const",
    "default",
    "enum",
    "examples",
    "$vocabulary",
})

REFERENCE_KEYWORDS = ("$ref", "$dynamicRef")
ANCHOR_KEYWORDS = ("$anchor", "$dynamicAnchor")

DRAFT_04 = "http://json-schema.org/draft-04/schema"

# Drafts where $ref replaces its whole schema object
LEGACY_REFERENCE_DIALECTS = frozenset({
    DRAFT_04,
    "http://json-schema.org/draft-06/schema",
    "http://json-schema.org/draft-07/schema",
})


def is_schema_pointer(pointer: str) -> bool:
    """Guess whether the object at ``pointer`` is a schema from its location alone."""
    segments = pointer_segments(pointer)
    if not segments:
        return True
    if len(segments) >= 2 and segments[-2] in SCHEMA_MAP_KEYWORDS:
        return True
    if len(segments) >= 2 and segments[-2] in DATA_KEYWORDS:
        return False
    return segments[-1] not in SCHEMA_MAP_KEYWORDS | DATA_KEYWORDS


def is_schema_object(node: Optional[JsonNode]) -> bool:
    return node is not None and node.type == JsonType.OBJECT and is_schema_pointer(node.pointer)


def property_value(node: JsonNode, name: str) -> Optional[JsonNode]:
    """Get the value node of one member of an object node."""
    for member in node.children:
        key, value = member.children
        if key.value == name:
            return value
    return None


def _dialect_key(dialect: Optional[str]) -> Optional[str]:
    return dialect.rstrip("#") if dialect else None


@dataclass
class Reference:
    """
    One reference keyword in a schema document.

    Attributes:
        node: String node holding the reference
        schema: Schema object the reference keyword belongs to
        base_uri: Base URI the reference resolves against
        dialect: Dialect of the enclosing schema
    """

    node: JsonNode
    schema: JsonNode
    base_uri: str
    dialect: Optional[str] = None

    @property
    def value(self) -> str:
        return self.node.value

    @property
    def target_uri(self) -> str:
        """Absolute URI the reference points at."""
        if self.value.startswith("#"):
            return f"{self.base_uri}{self.value}"
        return urljoin(self.base_uri, self.value)

    @property
    def highlight(self) -> JsonNode:
        """Node to show when listing this reference."""
        if _dialect_key(self.dialect) in LEGACY_REFERENCE_DIALECTS:
            return self.schema
        return self.node


@dataclass
class SchemaDocument:
    """
    Resources, anchors and references found in one parsed schema document.

    Attributes:
        uri: Document URI
        document: The parsed document
        resources: Schema object for each resource URI (no fragment)
        anchors: Schema object for each ``uri#name`` anchor
        references: Reference keywords in document order
        schema_nodes: Every schema object, in document order
    """

    uri: str
    document: JsonDocument
    dialect: Optional[str] = None
    resources: Dict[str, JsonNode] = field(default_factory=dict)
    anchors: Dict[str, JsonNode] = field(default_factory=dict)
    references: List[Reference] = field(default_factory=list)
    schema_nodes: List[JsonNode] = field(default_factory=list)

    @classmethod
    def analyze(cls, document: JsonDocument, default_dialect: Optional[str] = None) -> "SchemaDocument":
        """Walk a parsed document and collect its resources, anchors and references."""
        schema_document = cls(
            uri=document.document_uri,
            document=document,
            dialect=document.dialect_uri or default_dialect,
        )
        if document.root is not None and document.root.type == JsonType.OBJECT:
            schema_document.resources[document.document_uri] = document.root
            schema_document._walk(document.root, document.document_uri, schema_document.dialect)
        return schema_document

    def lookup(self, uri: str) -> Optional[JsonNode]:
        """
        Find the schema object an absolute URI identifies in this document.

        The fragment may be empty, a JSON Pointer, or an anchor name.
        """
        resource_uri, fragment = urldefrag(uri)
        resource = self.resources.get(resource_uri)
        if resource is None:
            return None
        if not fragment:
            return resource
        if fragment.startswith("/"):
            return self.document.get(resource.pointer + unquote(fragment))
        return self.anchors.get(f"{resource_uri}#{fragment}")

    def enclosing_schema(self, node: JsonNode) -> Optional[JsonNode]:
        """Find the innermost schema object around ``node``, including itself."""
        current: Optional[JsonNode] = node
        while current is not None and not is_schema_object(current):
            current = current.parent
        return current

    def reference_at(self, node: JsonNode) -> Optional[Reference]:
        """
        Get the reference ``node`` belongs to.

        That is the reference whose value is ``node``, or for drafts where
        ``$ref`` replaces its schema object, any reference in the object that
        ``node`` is a key or value of.
        """
        for reference in self.references:
            if reference.node is node:
                return reference

        if node.parent is None or node.parent.type != JsonType.PROPERTY:
            return None
        for reference in self.references:
            if reference.schema is node.parent.parent and reference.highlight is reference.schema:
                return reference
        return None

    def _walk(self, node: JsonNode, base_uri: str, dialect: Optional[str]) -> None:
        if node.type == JsonType.ARRAY:
            for item in node.children:
                self._walk(item, base_uri, dialect)
            return
        if node.type != JsonType.OBJECT:
            return

        schema = is_schema_pointer(node.pointer)
        if schema:
            self.schema_nodes.append(node)
            base_uri, dialect = self._identify(node, base_uri, dialect)

        for member in node.children:
            key, value = member.children
            if schema and key.value in DATA_KEYWORDS:
                continue
            if schema and key.value in REFERENCE_KEYWORDS and value.type == JsonType.STRING:
                self.references.append(Reference(node=value, schema=node, base_uri=base_uri, dialect=dialect))
            self._walk(value, base_uri, dialect)

    def _identify(self, node: JsonNode, base_uri: str, dialect: Optional[str]) -> Tuple[str, Optional[str]]:
        """Record the identifiers a schema object declares and return its base URI and dialect."""
        declared = property_value(node, "$schema")
        if declared is not None and declared.type == JsonType.STRING and node.parent is not None:
            dialect = declared.value

        id_keyword = "id" if _dialect_key(dialect) == DRAFT_04 else "$id"
        identifier = property_value(node, id_keyword)
        if identifier is not None and identifier.type == JsonType.STRING and identifier.value:
            if identifier.value.startswith("#"):
                # Plain-name fragments were anchors before 2019-09
                self.anchors[f"{base_uri}{identifier.value}"] = node
            else:
                base_uri, fragment = urldefrag(urljoin(base_uri, identifier.value))
                self.resources[base_uri] = node
                if fragment:
                    self.anchors[f"{base_uri}#{fragment}"] = node

        for keyword in ANCHOR_KEYWORDS:
            anchor = property_value(node, keyword)
            if anchor is not None and anchor.type == JsonType.STRING and anchor.value:
                self.anchors[f"{base_uri}#{anchor.value}"] = node

        return base_uri, dialect


@dataclass
class ReferenceTarget:
    """Where a reference leads. ``node`` is None for a known dialect meta-schema."""

    schema_document: Optional[SchemaDocument]
    node: Optional[JsonNode]


class SchemaIndex:
    """
    Analyzed schema documents by document URI, and by the resource URIs they define.

    Features refresh an entry whenever they parse a document, so lookups see
    the latest text the server has read.
    """

    def __init__(self):
        self._documents: Dict[str, SchemaDocument] = {}
        self._resources: Dict[str, str] = {}

    def update(self, schema_document: SchemaDocument) -> None:
        """Add or replace the entry for one document."""
        self.remove(schema_document.uri)
        self._documents[schema_document.uri] = schema_document
        for resource_uri in schema_document.resources:
            self._resources[resource_uri] = schema_document.uri

    def remove(self, uri: str) -> None:
        previous = self._documents.pop(uri, None)
        if previous is None:
            return
        for resource_uri in previous.resources:
            if self._resources.get(resource_uri) == uri:
                del self._resources[resource_uri]

    def get(self, uri: str) -> Optional[SchemaDocument]:
        return self._documents.get(uri)

    def documents(self) -> Iterator[SchemaDocument]:
        return iter(list(self._documents.values()))

    def document_for_resource(self, resource_uri: str) -> Optional[SchemaDocument]:
        uri = self._resources.get(resource_uri)
        return self._documents.get(uri) if uri is not None else None

    def clear(self) -> None:
        self._documents.clear()
        self._resources.clear()

    async def resolve(self, reference: Reference, origin: SchemaDocument, resolver: DocumentResolver,
                      dialects=None) -> Optional[ReferenceTarget]:
        """
        Follow a reference to the schema object it names.

        Resources in ``origin`` come first, then indexed documents, then
        ``file:`` URIs read through ``resolver``. A reference to a known
        dialect resolves to its meta-schema.

        Returns:
            The target, or None when nothing answers to the reference
        """
        target_uri = reference.target_uri
        resource_uri, _ = urldefrag(target_uri)

        schema_document = origin if resource_uri in origin.resources else self.document_for_resource(resource_uri)
        if schema_document is None and resource_uri.startswith("file:"):
            schema_document = await self._load(resource_uri, resolver, origin.dialect)

        if schema_document is not None:
            node = schema_document.lookup(target_uri)
            return ReferenceTarget(schema_document, node) if node is not None else None

        if dialects is not None and dialects.has_dialect(resource_uri):
            return ReferenceTarget(None, None)
        return None

    def is_unknown_remote(self, reference: Reference, origin: SchemaDocument) -> bool:
        """Check whether a reference leads outside every document the server can read."""
        resource_uri, _ = urldefrag(reference.target_uri)
        if resource_uri.startswith("file:") or resource_uri in origin.resources:
            return False
        return self.document_for_resource(resource_uri) is None

    async def refresh(self, uri: str, resolver: DocumentResolver,
                      default_dialect: Optional[str] = None) -> SchemaDocument:
        """
        Parse the current text of a document and replace its entry.

        Raises:
            DocumentResolutionError: If the document cannot be loaded
        """
        text_document = await resolver.fetch(uri)
        schema_document = SchemaDocument.analyze(JsonDocument.from_text_document(text_document), default_dialect)
        self.update(schema_document)
        return schema_document

    async def _load(self, uri: str, resolver: DocumentResolver, dialect: Optional[str]) -> Optional[SchemaDocument]:
        try:
            return await self.refresh(uri, resolver, dialect)
        except DocumentResolutionError as e:
            logger.debug(f"Unresolvable reference target {uri}: {e.reason}")
            return None
