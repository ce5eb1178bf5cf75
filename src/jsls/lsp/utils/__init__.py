"""LSP utility modules for the JSON Schema language server."""

from .pubsub import MessageBus, MessageBusError, Messages
from .documents import DocumentResolutionError, DocumentResolver, LiveDocuments, NOT_LIVE_VERSION
from .models import JsonNode, JsonType
from .json_parser import JsonDocument, JsonParsingError
from .dialects import DialectRegistry
from .workspace import WorkspaceFolders
from .schemas import Reference, SchemaDocument, SchemaIndex

__all__ = [
    "MessageBus",
    "MessageBusError",
    "Messages",
    "DocumentResolutionError",
    "DocumentResolver",
    "LiveDocuments",
    "NOT_LIVE_VERSION",
    "JsonNode",
    "JsonType",
    "JsonDocument",
    "JsonParsingError",
    "DialectRegistry",
    "WorkspaceFolders",
    "Reference",
    "SchemaDocument",
    "SchemaIndex",
]
