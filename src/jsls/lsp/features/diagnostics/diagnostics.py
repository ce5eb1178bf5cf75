"""Main diagnostics functionality for the LSP server."""

import asyncio
import logging
from typing import Iterable, List, Optional

from lsprotocol import types

from jsls.lsp.features.base import Capabilities, Feature
from jsls.lsp.utils.dialects import DialectRegistry
from jsls.lsp.utils.documents import NOT_LIVE_VERSION, DocumentResolutionError
from jsls.lsp.utils.json_parser import JsonDocument
from jsls.lsp.utils.models import JsonNode, JsonType, append_pointer
from jsls.lsp.utils.pubsub import Messages
from jsls.lsp.utils.schemas import SchemaDocument, SchemaIndex, property_value


logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = "json-schema"

MISSING_REFERENCE_MESSAGE = "Referenced schema doesn't exist"


class DiagnosticsService:
    """Turns a parsed schema document into LSP diagnostics."""

    def __init__(self, dialects: DialectRegistry):
        """Initialize the diagnostics service."""
        self._dialects = dialects

    def register_dialect(self, document: JsonDocument) -> Optional[str]:
        """
        Register ``document`` as a dialect if it defines one.

        A document defines a dialect when it is an object with both ``$id``
        and ``$vocabulary``.

        Returns:
            The registered dialect identifier, or None
        """
        value = document.value
        if not isinstance(value, dict) or "$vocabulary" not in value or not isinstance(value.get("$id"), str):
            return None

        try:
            return self._dialects.register(value)
        except Exception as e:
            logger.warning(f"Cannot register dialect from {document.document_uri}: {e}")
            return None

    def diagnose(self, document: JsonDocument, default_dialect: Optional[str] = None) -> List[types.Diagnostic]:
        """
        Validate a schema document.

        Args:
            document: Parsed document
            default_dialect: Dialect assumed when the document has no ``$schema``

        Returns:
            Diagnostics in document order; empty for a valid schema
        """
        if document.is_empty:
            return []

        if not document.is_valid:
            error = document.error
            end = types.Position(line=error.position.line, character=error.position.character + 1)
            return [self._diagnostic(types.Range(start=error.position, end=end), f"Invalid JSON: {error.message}")]

        value = document.value
        if isinstance(value, bool):
            return []
        if not isinstance(value, dict):
            return [self._diagnostic(document.root.range, "A schema must be an object or a boolean")]

        schema_node = document.get("/$schema")
        dialect = document.dialect_uri
        if dialect is not None:
            if not self._dialects.has_dialect(dialect):
                return [self._diagnostic((schema_node or document.root).range, "Unknown dialect")]
        else:
            dialect = default_dialect
            if dialect is None:
                return [self._diagnostic(document.root.range, "No dialect")]
            if not self._dialects.has_dialect(dialect):
                return [self._diagnostic(document.root.range, "Unknown dialect")]

        return self._validate(document, dialect)

    def deprecations(self, schema_document: SchemaDocument) -> List[types.Diagnostic]:
        """
        Warn about every schema marked ``"deprecated": true``.

        The warning covers the member holding the deprecated schema and
        carries its ``x-deprecationMessage`` when there is one.
        """
        diagnostics = []
        for node in schema_document.schema_nodes:
            flag = property_value(node, "deprecated")
            if flag is None or flag.type != JsonType.BOOLEAN or not flag.value:
                continue

            note = property_value(node, "x-deprecationMessage")
            message = note.value if note is not None and note.type == JsonType.STRING and note.value else "deprecated"
            diagnostics.append(self._diagnostic(
                (node.parent or node).range, message, types.DiagnosticSeverity.Warning,
                tags=[types.DiagnosticTag.Deprecated],
            ))
        return diagnostics

    async def missing_references(self, schema_document: SchemaDocument, schemas: SchemaIndex,
                                 resolver) -> List[types.Diagnostic]:
        """Report every reference that resolves to nothing the server can find."""
        diagnostics = []
        for reference in schema_document.references:
            target = await schemas.resolve(reference, schema_document, resolver, self._dialects)
            # Remote documents are never downloaded, so an unknown one proves nothing
            if target is None and not schemas.is_unknown_remote(reference, schema_document):
                diagnostics.append(self._diagnostic(reference.node.range, MISSING_REFERENCE_MESSAGE))
        return diagnostics

    def _validate(self, document: JsonDocument, dialect: str) -> List[types.Diagnostic]:
        validator_cls = self._dialects.validator_for(dialect)
        validator = validator_cls(validator_cls.META_SCHEMA)

        diagnostics = []
        try:
            for error in validator.iter_errors(document.value):
                node = self._node_for_path(document, error.absolute_path)
                diagnostics.append(self._diagnostic(node.range, error.message))
        except Exception as e:
            # Referencing failures inside a custom meta-schema end up here
            logger.error(f"Error validating {document.document_uri} against {dialect}: {e}")

        diagnostics.sort(key=lambda d: (d.range.start.line, d.range.start.character))
        return diagnostics

    def _node_for_path(self, document: JsonDocument, path: Iterable) -> JsonNode:
        """Find the node for a validation error path, or its closest existing ancestor."""
        pointers = [""]
        for segment in path:
            pointers.append(append_pointer(pointers[-1], str(segment)))

        for pointer in reversed(pointers):
            node = document.get(pointer)
            if node is not None:
                return node
        return document.root

    def _diagnostic(self, range_: types.Range, message: str,
                    severity: types.DiagnosticSeverity = types.DiagnosticSeverity.Error,
                    tags: Optional[List[types.DiagnosticTag]] = None) -> types.Diagnostic:
        return types.Diagnostic(
            range=range_,
            message=message,
            severity=severity,
            source=DIAGNOSTIC_SOURCE,
            tags=tags,
        )


class DiagnosticsFeature(Feature):
    """
    Publishes diagnostics for schema documents.

    Open documents are validated whenever they change. Schemas elsewhere in the
    workspace are validated once the server is ready and again whenever files
    change on disk.
    """

    name = "diagnostics"

    def __init__(self, context):
        super().__init__(context)
        self.service = DiagnosticsService(context.dialects)
        self._connection = None

    def load(self, connection, documents) -> None:
        self._connection = connection
        self.subscribe(Messages.DOCUMENT_OPENED, self._document_updated)
        self.subscribe(Messages.DOCUMENT_CHANGED, self._document_updated)
        self.subscribe(Messages.DOCUMENT_CLOSED, self._document_closed)
        self.subscribe(Messages.WATCHED_FILES_CHANGED, self._files_changed)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        return {}

    async def on_initialized(self, connection, documents) -> None:
        await self.validate_workspace()

    def on_shutdown(self, connection, documents) -> None:
        self.unsubscribe_all()
        self._connection = None

    async def validate(self, uri: str) -> List[types.Diagnostic]:
        """
        Validate one schema document and publish its diagnostics.

        Raises:
            DocumentResolutionError: If the document cannot be loaded
        """
        text_document = await self.resolver.fetch(uri)
        document = JsonDocument.from_text_document(text_document)
        self.service.register_dialect(document)
        return await self._publish(await self._index(document), text_document.version)

    async def validate_workspace(self) -> int:
        """
        Validate every schema file in the workspace folders.

        Dialect documents are registered before anything is validated, so a
        schema may use a dialect defined anywhere in the workspace.

        Returns:
            Number of schema documents validated
        """
        if self._connection is None:
            return 0

        matcher = await self.context.settings.matcher(self._connection)
        folders = self.context.workspace_folders
        uris = await asyncio.to_thread(lambda: list(folders.files(matcher.matches)))

        parsed = []
        for uri in uris:
            try:
                text_document = await self.resolver.fetch(uri)
            except DocumentResolutionError as e:
                logger.warning(f"Skipping {uri}: {e.reason}")
                continue
            document = JsonDocument.from_text_document(text_document)
            self.service.register_dialect(document)
            parsed.append((await self._index(document), text_document.version))

        # Every workspace resource is indexed before references are checked
        for schema_document, version in parsed:
            await self._publish(schema_document, version)

        logger.info(f"Validated {len(parsed)} workspace schemas")
        return len(parsed)

    async def _index(self, document: JsonDocument) -> SchemaDocument:
        schema_document = SchemaDocument.analyze(document, await self.default_dialect(self._connection))
        self.context.schemas.update(schema_document)
        return schema_document

    async def _publish(self, schema_document: SchemaDocument, version: int) -> List[types.Diagnostic]:
        document = schema_document.document
        diagnostics = self.service.diagnose(document, await self.default_dialect(self._connection))
        if document.is_valid and isinstance(document.value, dict):
            diagnostics.extend(self.service.deprecations(schema_document))
            diagnostics.extend(await self.service.missing_references(
                schema_document, self.context.schemas, self.resolver,
            ))
            diagnostics.sort(key=lambda d: (d.range.start.line, d.range.start.character))
        logger.debug(f"Publishing {len(diagnostics)} diagnostics for {document.document_uri}")
        self._connection.publish_diagnostics(
            document.document_uri,
            diagnostics,
            version=None if version == NOT_LIVE_VERSION else version,
        )
        return diagnostics

    async def _document_updated(self, message: str, params) -> None:
        uri = params.text_document.uri
        if not await self.context.settings.is_schema(self._connection, uri):
            return
        await self.validate(uri)

    def _document_closed(self, message: str, params: types.DidCloseTextDocumentParams) -> None:
        # Send empty diagnostics to clear them in the client
        self._connection.publish_diagnostics(params.text_document.uri, [])

    async def _files_changed(self, message: str, params: types.DidChangeWatchedFilesParams) -> None:
        for change in params.changes:
            if change.type == types.FileChangeType.Deleted:
                self.context.schemas.remove(change.uri)
                self._connection.publish_diagnostics(change.uri, [])
        await self.validate_workspace()
