"""Snippet completion for conditional (``if``/``then``/``else``) schemas."""

import logging
from typing import List

from lsprotocol import types

from jsls.lsp.features.base import Capabilities, Feature
from jsls.lsp.utils.models import JsonNode, JsonType
from jsls.lsp.utils.pubsub import Messages

from .completion import CompletionContext

logger = logging.getLogger(__name__)

IF_THEN_SNIPPET = """{
  "type": "object",
  "properties": {
    "${1:propertyName}": { "const": ${2:value} }
  },
  "required": ["${1:propertyName}"]
},
"then": ${3:{}}"""

IF_THEN_ELSE_SNIPPET = """{
  "type": "object",
  "properties": {
    "${1:varName}": { "const": ${2:value} }
  },
  "required": ["${1:varName}"]
},
"then": ${3:{}},
"else": ${4:{}}"""

IF_THEN_COMPLETIONS = (
    types.CompletionItem(
        label="if/then",
        kind=types.CompletionItemKind.Snippet,
        insert_text=IF_THEN_SNIPPET,
        insert_text_format=types.InsertTextFormat.Snippet,
        documentation="Basic if/then pattern with a single condition and corresponding schema.",
    ),
    types.CompletionItem(
        label="If/then/else",
        kind=types.CompletionItemKind.Snippet,
        insert_text=IF_THEN_ELSE_SNIPPET,
        insert_text_format=types.InsertTextFormat.Snippet,
        documentation="Conditional object structure with if/then/else logic",
    ),
)


class IfThenCompletionFeature(Feature):
    """Offers conditional schema patterns right after an ``"if":`` key."""

    name = "if-then-completion"

    def load(self, connection, documents) -> None:
        self.subscribe(Messages.COMPLETIONS, self._completions)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        return {}

    async def on_initialized(self, connection, documents) -> None:
        pass

    def on_shutdown(self, connection, documents) -> None:
        self.unsubscribe_all()

    def get_completions(self, node: JsonNode) -> List[types.CompletionItem]:
        # The cursor sits between the colon and a value that is not there yet
        if node.type != JsonType.PROPERTY or not node.pointer.endswith("/if"):
            return []
        return list(IF_THEN_COMPLETIONS)

    def _completions(self, message: str, context: CompletionContext) -> None:
        context.items.extend(self.get_completions(context.node))
