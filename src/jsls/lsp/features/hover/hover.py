"""Hover documentation for schema keywords."""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from lsprotocol import types

from jsls.lsp.features.base import Capabilities, Feature
from jsls.lsp.utils.documents import DocumentResolutionError
from jsls.lsp.utils.json_parser import JsonDocument
from jsls.lsp.utils.schemas import is_schema_object

logger = logging.getLogger(__name__)

_DESCRIPTIONS_PATH = Path(__file__).parent / "keyword-descriptions.json"
_descriptions: Optional[Dict[str, str]] = None


def _load_descriptions() -> Dict[str, str]:
    global _descriptions
    if _descriptions is None:
        with open(_DESCRIPTIONS_PATH, encoding="utf-8") as descriptions_file:
            _descriptions = json.load(descriptions_file)
    return _descriptions


def keyword_description(keyword: str, meta_schema: Optional[dict] = None) -> Optional[str]:
    """
    Describe a schema keyword.

    A ``description`` the meta-schema gives the keyword wins over the
    built-in text, so custom dialects can document their own keywords.
    """
    properties = (meta_schema or {}).get("properties")
    if isinstance(properties, dict):
        described = properties.get(keyword)
        if isinstance(described, dict) and isinstance(described.get("description"), str):
            return described["description"]
    return _load_descriptions().get(keyword)


class HoverFeature(Feature):
    """Shows what a keyword means when hovering over it in a schema object."""

    name = "hover"

    def __init__(self, context):
        super().__init__(context)
        self._connection = None

    def load(self, connection, documents) -> None:
        self._connection = connection

        @connection.feature(types.TEXT_DOCUMENT_HOVER)
        async def hover(params: types.HoverParams) -> Optional[types.Hover]:
            return await self.hover(params.text_document.uri, params.position)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        return {"hoverProvider": True}

    async def on_initialized(self, connection, documents) -> None:
        pass

    def on_shutdown(self, connection, documents) -> None:
        self._connection = None

    async def hover(self, uri: str, position: types.Position) -> Optional[types.Hover]:
        """
        Describe the keyword under the cursor.

        Returns:
            Markdown hover over the keyword's key, or None when the cursor is
            not on a keyword of a schema in a known dialect
        """
        try:
            text_document = await self.resolver.fetch(uri)
        except DocumentResolutionError as e:
            logger.warning(f"No hover for {uri}: {e.reason}")
            return None

        document = JsonDocument.from_text_document(text_document)
        node = document.find_node_at_offset(document.offset_at(position))
        if node is None or not node.is_property_key() or not is_schema_object(node.parent.parent):
            return None

        dialect = document.dialect_uri or await self.default_dialect(self._connection)
        validator_cls = self.context.dialects.validator_for(dialect) if dialect else None
        if validator_cls is None:
            return None

        description = keyword_description(node.value, validator_cls.META_SCHEMA)
        if not description:
            return None

        return types.Hover(
            contents=types.MarkupContent(kind=types.MarkupKind.Markdown, value=description),
            range=node.range,
        )
