"""Completion of schema keywords for property names."""

import logging
from typing import List, Optional

from lsprotocol import types

from jsls.lsp.features.base import Capabilities, Feature
from jsls.lsp.utils.models import JsonNode, JsonType
from jsls.lsp.utils.pubsub import Messages
from jsls.lsp.utils.schemas import is_schema_pointer

from .completion import CompletionContext

logger = logging.getLogger(__name__)


class KeywordCompletionFeature(Feature):
    """Offers the dialect's keywords when typing a property name of a schema."""

    name = "keyword-completion"

    def load(self, connection, documents) -> None:
        self.subscribe(Messages.COMPLETIONS, self._completions)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        return {}

    async def on_initialized(self, connection, documents) -> None:
        pass

    def on_shutdown(self, connection, documents) -> None:
        self.unsubscribe_all()

    def get_completions(self, node: JsonNode, dialect: Optional[str]) -> List[types.CompletionItem]:
        if dialect is None or not node.is_property_key():
            return []

        schema_node = node.parent.parent
        if schema_node is None or schema_node.type != JsonType.OBJECT or not is_schema_pointer(schema_node.pointer):
            return []

        return [
            types.CompletionItem(label=keyword, kind=types.CompletionItemKind.Value)
            for keyword in sorted(self.context.dialects.keywords(dialect))
        ]

    def _completions(self, message: str, context: CompletionContext) -> None:
        context.items.extend(self.get_completions(context.node, context.dialect))
