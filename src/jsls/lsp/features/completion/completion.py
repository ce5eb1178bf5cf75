from dataclasses import dataclass, field
from typing import List, Optional
import logging

from lsprotocol import types

from jsls.lsp.features.base import Capabilities, Feature
from jsls.lsp.utils.documents import DocumentResolutionError
from jsls.lsp.utils.json_parser import JsonDocument
from jsls.lsp.utils.models import JsonNode
from jsls.lsp.utils.pubsub import MessageBusError, Messages

logger = logging.getLogger(__name__)

TRIGGER_CHARACTERS = ['"', ':', ' ']


@dataclass
class CompletionContext:
    """
    Payload of the ``completions`` message.

    Providers read the node under the cursor and append to ``items``.
    """

    document: JsonDocument
    node: JsonNode
    dialect: Optional[str] = None
    items: List[types.CompletionItem] = field(default_factory=list)


class CompletionFeature(Feature):
    """
    Answers ``textDocument/completion`` by asking the completion providers.

    The feature locates the node under the cursor and publishes a
    ``CompletionContext`` on the bus; every provider subscribed to
    ``completions`` contributes items to it.
    """

    name = "completion"

    def __init__(self, context):
        super().__init__(context)
        self._connection = None

    def load(self, connection, documents) -> None:
        self._connection = connection

        @connection.feature(types.TEXT_DOCUMENT_COMPLETION)
        async def completions(params: types.CompletionParams) -> types.CompletionList:
            """Provide completions for the given text document position."""
            logger.debug(f"Completion request received for {params.text_document.uri} at position {params.position}")
            return await self.complete(params.text_document.uri, params.position)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        return {
            "completionProvider": {
                "resolveProvider": False,
                "triggerCharacters": list(TRIGGER_CHARACTERS),
            }
        }

    async def on_initialized(self, connection, documents) -> None:
        pass

    def on_shutdown(self, connection, documents) -> None:
        self._connection = None

    async def complete(self, uri: str, position: types.Position) -> types.CompletionList:
        """
        Collect completion items for a position in a document.

        Args:
            uri: Document URI
            position: Cursor position

        Returns:
            Every item the providers contributed; empty when nothing applies
        """
        try:
            text_document = await self.resolver.fetch(uri)
        except DocumentResolutionError as e:
            logger.warning(f"No completions for {uri}: {e.reason}")
            return types.CompletionList(is_incomplete=False, items=[])

        document = JsonDocument.from_text_document(text_document)
        node = document.find_node_at_offset(document.offset_at(position))
        if node is None:
            logger.debug("No node at cursor")
            return types.CompletionList(is_incomplete=False, items=[])

        context = CompletionContext(document=document, node=node, dialect=await self._dialect_for(document))
        try:
            await self.bus.publish_async(Messages.COMPLETIONS, context)
        except MessageBusError as e:
            # Items from providers that succeeded are still returned
            logger.error(f"Completion provider failed: {e}")

        logger.debug(f"Returning {len(context.items)} completion items")
        return types.CompletionList(is_incomplete=False, items=context.items)

    async def _dialect_for(self, document: JsonDocument) -> Optional[str]:
        dialect = document.dialect_uri
        if dialect is None and self._connection is not None:
            settings = await self.context.settings.get(self._connection)
            dialect = settings.get("defaultDialect")
        return dialect
