"""Completion of dialect URIs for the ``$schema`` keyword."""

import logging
from typing import List

from lsprotocol import types

from jsls.lsp.features.base import Capabilities, Feature
from jsls.lsp.utils.models import JsonNode, JsonType
from jsls.lsp.utils.pubsub import Messages

from .completion import CompletionContext

logger = logging.getLogger(__name__)

# These drafts identify themselves with an empty fragment. Later drafts do not.
TRAILING_HASH_DIALECTS = frozenset({
    "http://json-schema.org/draft-04/schema",
    "http://json-schema.org/draft-06/schema",
    "http://json-schema.org/draft-07/schema",
})


class SchemaCompletionFeature(Feature):
    """Offers every known dialect inside a ``$schema`` string."""

    name = "schema-completion"

    def load(self, connection, documents) -> None:
        self.subscribe(Messages.COMPLETIONS, self._completions)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        return {}

    async def on_initialized(self, connection, documents) -> None:
        pass

    def on_shutdown(self, connection, documents) -> None:
        self.unsubscribe_all()

    def get_completions(self, node: JsonNode) -> List[types.CompletionItem]:
        """
        Get dialect completions for a node.

        Returns:
            One item per known dialect when ``node`` is a string at a pointer
            ending in ``/$schema``, otherwise an empty list
        """
        if not node.pointer.endswith("/$schema") or node.type != JsonType.STRING:
            return []

        # The registry grows as dialect documents load, so ask every time
        return [
            types.CompletionItem(label=label_for(uri), kind=types.CompletionItemKind.Value)
            for uri in self.context.dialects.get_dialect_ids()
        ]

    def _completions(self, message: str, context: CompletionContext) -> None:
        context.items.extend(self.get_completions(context.node))


def label_for(uri: str) -> str:
    return f"{uri}#" if uri in TRAILING_HASH_DIALECTS else uri
