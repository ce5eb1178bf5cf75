"""
Document resolution for JSON Schema LSP.

Two stores hold documents the server knows about:

- the live-documents table, owned by the transport runtime, with every
  document the editor has open and keeps in sync
- the inactive store, owned by ``DocumentResolver``, with documents the
  server read from disk itself (referenced schemas, workspace files)

``DocumentResolver.fetch`` hands back one canonical ``TextDocument`` for a
URI no matter which store it lives in, reading the disk at most once per URI
until the entry is invalidated.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol
from urllib.parse import urlparse

from pygls.uris import to_fs_path
from pygls.workspace import TextDocument


logger = logging.getLogger(__name__)

# Version sentinel for documents read from disk rather than live-synced
NOT_LIVE_VERSION = -1

LANGUAGE_ID = "json"


class DocumentResolutionError(Exception):
    """Raised when a document cannot be loaded from disk."""

    def __init__(self, uri: str, reason: str):
        self.uri = uri
        self.reason = reason
        super().__init__(f"Cannot resolve document {uri}: {reason}")


class DocumentTable(Protocol):
    """Read-only view of documents the editor is live-syncing."""

    def get(self, uri: str) -> Optional[TextDocument]:
        ...

    def keys(self) -> List[str]:
        ...


class LiveDocuments:
    """
    Live-documents table backed by the pygls workspace.

    The workspace is looked up on every call because pygls only creates it
    while answering the ``initialize`` request.
    """

    def __init__(self, server):
        self._server = server

    def get(self, uri: str) -> Optional[TextDocument]:
        """Get the live document for ``uri`` without creating one."""
        workspace = self._workspace()
        if workspace is None:
            return None
        return workspace.text_documents.get(uri)

    def keys(self) -> List[str]:
        """Get the URIs of every live document."""
        workspace = self._workspace()
        if workspace is None:
            return []
        return list(workspace.text_documents.keys())

    def __contains__(self, uri: str) -> bool:
        return self.get(uri) is not None

    def _workspace(self):
        try:
            return self._server.workspace
        except RuntimeError:
            return None


class DocumentResolver:
    """
    Resolves a URI to a single in-memory document across both stores.

    Lookup order:
    1. Inactive store - cached disk documents are returned as-is
    2. Live table - documents the editor is tracking
    3. Disk - read, wrap in a ``TextDocument`` with version ``-1``, cache

    Concurrent fetches of the same unseen URI share one load. Failed loads are
    never cached.
    """

    def __init__(self, live_documents: DocumentTable):
        """
        Initialize the resolver.

        Args:
            live_documents: Live-documents table of the transport runtime
        """
        self._live_documents = live_documents
        self._inactive: Dict[str, TextDocument] = {}
        self._loading: Dict[str, asyncio.Task] = {}

    async def fetch(self, uri: str) -> TextDocument:
        """
        Get the canonical document for ``uri``.

        Args:
            uri: Document URI

        Returns:
            The cached, live, or freshly loaded document

        Raises:
            DocumentResolutionError: If the document has to be read from disk
                and the read fails
        """
        document = self._inactive.get(uri)
        if document is not None:
            return document

        document = self._live_documents.get(uri)
        if document is not None:
            return document

        task = self._loading.get(uri)
        if task is None:
            task = asyncio.ensure_future(self._load(uri))
            self._loading[uri] = task
            task.add_done_callback(lambda _: self._loading.pop(uri, None))

        # Shield the shared load so one cancelled caller does not fail the rest
        return await asyncio.shield(task)

    def exists(self, uri: str) -> bool:
        """Check whether ``uri`` is live or already loaded from disk."""
        return uri in self._inactive or self._live_documents.get(uri) is not None

    def invalidate(self, uri: str) -> bool:
        """
        Drop ``uri`` from the inactive store.

        Returns:
            True if an entry was removed
        """
        removed = self._inactive.pop(uri, None) is not None
        if removed:
            logger.debug(f"Invalidated inactive document {uri}")
        return removed

    def clear(self) -> None:
        """Drop every inactive document."""
        count = len(self._inactive)
        self._inactive.clear()
        logger.info(f"Cleared {count} inactive documents")

    def inactive_uris(self) -> Iterator[str]:
        """Iterate over the URIs currently held in the inactive store."""
        return iter(list(self._inactive))

    async def _load(self, uri: str) -> TextDocument:
        """Read ``uri`` from disk and cache it in the inactive store."""
        path = to_fs_path(uri) if urlparse(uri).scheme == "file" else None
        if path is None:
            raise DocumentResolutionError(uri, "not a file URI")

        try:
            source = await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {uri}: {e}")
            raise DocumentResolutionError(uri, str(e)) from e

        # The editor may have opened the document while the read was pending
        live = self._live_documents.get(uri)
        if live is not None:
            logger.debug(f"Discarding disk read of {uri}: now live")
            return live

        document = TextDocument(
            uri,
            source=source,
            version=NOT_LIVE_VERSION,
            language_id=LANGUAGE_ID,
        )
        self._inactive[uri] = document
        logger.debug(f"Loaded inactive document {uri}")
        return document
