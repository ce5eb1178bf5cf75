"""
LSP server implementation for JSON Schema documents.

This package provides a Language Server Protocol implementation for JSON
Schema files built around a small feature host: independent features share
one connection, one message bus and one document resolver.

Key Components:
- JSLSPServer: pygls server wiring the transport to the feature host
- FeatureHost: drives features through initialize, initialized and shutdown
- Feature modules: configuration, workspace, diagnostics and completion
- Utility modules: message bus, document resolver, JSON parsing, dialects

Usage Example:
    from jsls.lsp import JSLSPServer

    server = JSLSPServer(default_dialect="https://json-schema.org/draft/2020-12/schema")

    # Start server (stdio mode for IDE integration)
    server.start()

    # Or start in TCP mode for testing
    server.start(use_tcp=True, host="localhost")
"""

from .server import JSLSPServer, HostProtocol
from .host import FeatureHost, FeatureInitializationError, HostState, merge_capabilities

from .features import Feature, FeatureContext, default_features

from .utils import (
    DialectRegistry,
    DocumentResolutionError,
    DocumentResolver,
    JsonDocument,
    LiveDocuments,
    MessageBus,
    Messages,
)

__all__ = [
    # Main server
    "JSLSPServer",
    "HostProtocol",
    "FeatureHost",
    "FeatureInitializationError",
    "HostState",
    "merge_capabilities",

    # Features
    "Feature",
    "FeatureContext",
    "default_features",

    # Utilities
    "DialectRegistry",
    "DocumentResolutionError",
    "DocumentResolver",
    "JsonDocument",
    "LiveDocuments",
    "MessageBus",
    "Messages",
]
