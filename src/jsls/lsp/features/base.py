"""
Feature contract for the JSON Schema language server.

A feature is one pluggable unit of server capability. The host drives every
feature through the same four lifecycle hooks, in registration order:

1. ``on_initialize(params)`` - inspect client capabilities and declare the
   server capabilities this feature provides
2. ``load(connection, documents)`` - wire protocol handlers and bus
   subscriptions
3. ``on_initialized(connection, documents)`` - asynchronous setup such as
   dynamic capability registration
4. ``on_shutdown(connection, documents)`` - release subscriptions and state

Features never reference each other. They share the services in
``FeatureContext`` and coordinate through its message bus.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from lsprotocol import types

from jsls.config.settings import SettingsStore
from jsls.lsp.utils.dialects import DialectRegistry
from jsls.lsp.utils.documents import DocumentResolver, DocumentTable
from jsls.lsp.utils.pubsub import Handler, MessageBus
from jsls.lsp.utils.schemas import SchemaIndex
from jsls.lsp.utils.workspace import WorkspaceFolders


logger = logging.getLogger(__name__)

Capabilities = Dict[str, Any]


@dataclass
class FeatureContext:
    """
    Services shared by every feature of one server instance.

    Attributes:
        bus: Message bus for cross-feature coordination
        resolver: Document resolver over the live and inactive stores
        dialects: Known schema dialects
        settings: Cached client settings
        workspace_folders: Workspace folders reported by the client
        schemas: Analyzed schema documents, for following references
    """

    bus: MessageBus
    resolver: DocumentResolver
    dialects: DialectRegistry = field(default_factory=DialectRegistry)
    settings: SettingsStore = field(default_factory=SettingsStore)
    workspace_folders: WorkspaceFolders = field(default_factory=WorkspaceFolders)
    schemas: SchemaIndex = field(default_factory=SchemaIndex)


class Feature(ABC):
    """Base class for server features."""

    name = "feature"

    def __init__(self, context: FeatureContext):
        self.context = context
        self._subscriptions: List[Tuple[str, str]] = []

    @property
    def bus(self) -> MessageBus:
        return self.context.bus

    @property
    def resolver(self) -> DocumentResolver:
        return self.context.resolver

    @abstractmethod
    def load(self, connection, documents: DocumentTable) -> None:
        """Wire protocol handlers and bus subscriptions."""

    @abstractmethod
    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        """Return the server capabilities this feature provides, in wire (camelCase) form."""

    @abstractmethod
    async def on_initialized(self, connection, documents: DocumentTable) -> None:
        """Finish setup once the client has acknowledged initialization."""

    @abstractmethod
    def on_shutdown(self, connection, documents: DocumentTable) -> None:
        """Release everything acquired in ``load``."""

    async def default_dialect(self, connection) -> Optional[str]:
        """Dialect assumed for documents without ``$schema``."""
        if connection is None:
            return self.context.settings.default_dialect
        settings = await self.context.settings.get(connection)
        return settings.get("defaultDialect")

    def subscribe(self, message: str, handler: Handler) -> str:
        """Subscribe to the bus and remember the token for ``unsubscribe_all``."""
        token = self.bus.subscribe(message, handler)
        self._subscriptions.append((message, token))
        return token

    def unsubscribe_all(self) -> None:
        for message, token in self._subscriptions:
            self.bus.unsubscribe(message, token)
        self._subscriptions.clear()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"
