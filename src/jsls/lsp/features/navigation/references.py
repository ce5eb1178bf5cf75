"""Find every reference to a schema across the known schema documents."""

import logging
from typing import List

from lsprotocol import types

from jsls.lsp.features.base import Capabilities, Feature
from jsls.lsp.utils.documents import DocumentResolutionError

logger = logging.getLogger(__name__)


class ReferencesFeature(Feature):
    """
    Answers ``textDocument/references`` for the schema under the cursor.

    Every document in the schema index is searched: open documents and the
    workspace schemas diagnostics has already analyzed.
    """

    name = "references"

    def __init__(self, context):
        super().__init__(context)
        self._connection = None

    def load(self, connection, documents) -> None:
        self._connection = connection

        @connection.feature(types.TEXT_DOCUMENT_REFERENCES)
        async def references(params: types.ReferenceParams) -> List[types.Location]:
            return await self.references(params.text_document.uri, params.position)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        return {"referencesProvider": True}

    async def on_initialized(self, connection, documents) -> None:
        pass

    def on_shutdown(self, connection, documents) -> None:
        self._connection = None

    async def references(self, uri: str, position: types.Position) -> List[types.Location]:
        """
        List the references that resolve to the innermost schema at the cursor.

        Returns:
            Locations of the matching references, in index order
        """
        schemas = self.context.schemas
        try:
            schema_document = await schemas.refresh(uri, self.resolver, await self.default_dialect(self._connection))
        except DocumentResolutionError as e:
            logger.warning(f"No references for {uri}: {e.reason}")
            return []

        document = schema_document.document
        node = document.find_node_at_offset(document.offset_at(position))
        target = schema_document.enclosing_schema(node) if node is not None else None
        if target is None:
            return []

        locations = []
        for candidate in schemas.documents():
            for reference in candidate.references:
                resolved = await schemas.resolve(reference, candidate, self.resolver, self.context.dialects)
                if resolved is None or resolved.node is None:
                    continue
                if resolved.schema_document.uri == uri and resolved.node.pointer == target.pointer:
                    locations.append(types.Location(uri=candidate.uri, range=reference.highlight.range))

        logger.debug(f"Found {len(locations)} references to {uri}#{target.pointer}")
        return locations
