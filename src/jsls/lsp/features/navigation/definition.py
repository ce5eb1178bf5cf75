"""Go to the schema a reference points at."""

import logging
from typing import List

from lsprotocol import types

from jsls.lsp.features.base import Capabilities, Feature
from jsls.lsp.utils.documents import DocumentResolutionError

logger = logging.getLogger(__name__)


class DefinitionFeature(Feature):
    """Answers ``textDocument/definition`` on ``$ref`` values."""

    name = "definition"

    def __init__(self, context):
        super().__init__(context)
        self._connection = None

    def load(self, connection, documents) -> None:
        self._connection = connection

        @connection.feature(types.TEXT_DOCUMENT_DEFINITION)
        async def definition(params: types.DefinitionParams) -> List[types.Location]:
            return await self.definition(params.text_document.uri, params.position)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        return {"definitionProvider": True}

    async def on_initialized(self, connection, documents) -> None:
        pass

    def on_shutdown(self, connection, documents) -> None:
        self._connection = None

    async def definition(self, uri: str, position: types.Position) -> List[types.Location]:
        """
        Locate the target of the reference under the cursor.

        Returns:
            One location spanning the referenced schema, or nothing when the
            cursor is not on a reference or the reference does not resolve
        """
        schemas = self.context.schemas
        try:
            schema_document = await schemas.refresh(uri, self.resolver, await self.default_dialect(self._connection))
        except DocumentResolutionError as e:
            logger.warning(f"No definition for {uri}: {e.reason}")
            return []

        document = schema_document.document
        node = document.find_node_at_offset(document.offset_at(position))
        reference = schema_document.reference_at(node) if node is not None else None
        if reference is None:
            return []

        target = await schemas.resolve(reference, schema_document, self.resolver, self.context.dialects)
        if target is None or target.node is None:
            logger.debug(f"Reference {reference.value!r} has no definition to go to")
            return []

        return [types.Location(uri=target.schema_document.uri, range=target.node.range)]
