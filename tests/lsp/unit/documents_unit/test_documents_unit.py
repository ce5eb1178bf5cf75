import asyncio
from pathlib import Path

import pytest

from jsls.lsp.utils.documents import (
    NOT_LIVE_VERSION,
    DocumentResolutionError,
    DocumentResolver,
    LiveDocuments,
)


SCHEMA_TEXT = '{"$schema": "https://json-schema.org/draft/2020-12/schema"}'


@pytest.fixture
def disk_reads(monkeypatch):
    """Record every file the resolver reads."""
    reads = []
    original = Path.read_text

    def counting_read_text(self, *args, **kwargs):
        reads.append(str(self))
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Path, "read_text", counting_read_text)
    return reads


@pytest.fixture
def schema_file(tmp_path):
    path = tmp_path / "person.schema.json"
    path.write_text(SCHEMA_TEXT, encoding="utf-8")
    return path


async def test_fetch_loads_disk_document(resolver, schema_file, disk_reads):
    uri = schema_file.as_uri()

    document = await resolver.fetch(uri)

    assert document.uri == uri
    assert document.source == SCHEMA_TEXT
    assert document.version == NOT_LIVE_VERSION, "Disk documents carry the not-live version"
    assert document.language_id == "json"
    assert len(disk_reads) == 1


async def test_repeated_fetch_reads_disk_once(resolver, schema_file, disk_reads):
    uri = schema_file.as_uri()

    first = await resolver.fetch(uri)
    for _ in range(5):
        again = await resolver.fetch(uri)
        assert again is first, "Expected the cached instance"

    assert len(disk_reads) == 1, "Expected exactly one disk read"


async def test_concurrent_fetches_share_one_load(resolver, schema_file, disk_reads):
    uri = schema_file.as_uri()

    documents = await asyncio.gather(*(resolver.fetch(uri) for _ in range(5)))

    assert all(document is documents[0] for document in documents)
    assert len(disk_reads) == 1, "Concurrent fetches must not read the file twice"


async def test_live_document_never_reads_disk(resolver, live_documents, schema_file, tmp_path, disk_reads):
    # Put a different document in the inactive store first
    await resolver.fetch(schema_file.as_uri())
    disk_reads.clear()

    live_uri = (tmp_path / "open.schema.json").as_uri()
    live = live_documents.add(live_uri, "{}", version=3)

    for _ in range(3):
        assert await resolver.fetch(live_uri) is live

    assert disk_reads == [], "Live documents must not touch the disk"


async def test_inactive_store_is_checked_before_live_table(resolver, live_documents, schema_file):
    uri = schema_file.as_uri()
    cached = await resolver.fetch(uri)
    live = live_documents.add(uri, "{}", version=1)

    assert await resolver.fetch(uri) is cached

    resolver.invalidate(uri)
    assert await resolver.fetch(uri) is live


async def test_missing_file_is_not_cached(resolver, tmp_path, disk_reads):
    path = tmp_path / "later.schema.json"
    uri = path.as_uri()

    with pytest.raises(DocumentResolutionError) as exc_info:
        await resolver.fetch(uri)
    assert exc_info.value.uri == uri
    assert not resolver.exists(uri)

    # The next fetch retries the read
    path.write_text("{}", encoding="utf-8")
    document = await resolver.fetch(uri)

    assert document.source == "{}"
    assert len(disk_reads) == 2


async def test_non_file_uri_fails_to_resolve(resolver):
    with pytest.raises(DocumentResolutionError):
        await resolver.fetch("untitled:Untitled-1")


async def test_exists(resolver, live_documents, schema_file):
    uri = schema_file.as_uri()
    assert resolver.exists(uri) is False, "Unknown before the first fetch"

    await resolver.fetch(uri)
    assert resolver.exists(uri) is True

    live_documents.add("file:///live.json", "{}")
    assert resolver.exists("file:///live.json") is True


async def test_invalidate_forces_a_fresh_read(resolver, schema_file, disk_reads):
    uri = schema_file.as_uri()
    first = await resolver.fetch(uri)

    assert resolver.invalidate(uri) is True
    assert resolver.invalidate(uri) is False, "Nothing left to remove"

    schema_file.write_text('{"changed": true}', encoding="utf-8")
    second = await resolver.fetch(uri)

    assert second is not first
    assert second.source == '{"changed": true}'
    assert len(disk_reads) == 2


def test_invalidate_ignores_live_documents(resolver, live_documents):
    live_documents.add("file:///live.json", "{}")

    assert resolver.invalidate("file:///live.json") is False
    assert resolver.exists("file:///live.json") is True


async def test_clear_empties_inactive_store(resolver, schema_file):
    uri = schema_file.as_uri()
    await resolver.fetch(uri)
    assert list(resolver.inactive_uris()) == [uri]

    resolver.clear()

    assert list(resolver.inactive_uris()) == []
    assert not resolver.exists(uri)


async def test_cancelled_fetch_does_not_cancel_shared_load(resolver, schema_file):
    uri = schema_file.as_uri()

    cancelled = asyncio.ensure_future(resolver.fetch(uri))
    survivor = asyncio.ensure_future(resolver.fetch(uri))
    await asyncio.sleep(0)
    cancelled.cancel()

    document = await survivor
    assert document.source == SCHEMA_TEXT
    assert resolver.exists(uri)


async def test_document_opened_during_load_is_not_cached(resolver, live_documents, schema_file):
    uri = schema_file.as_uri()

    pending = asyncio.ensure_future(resolver.fetch(uri))
    await asyncio.sleep(0)
    live = live_documents.add(uri, '{"title": "live"}', version=4)
    resolver.invalidate(uri)

    assert await pending is live
    assert list(resolver.inactive_uris()) == [], "The disk copy must not shadow the live document"
    assert await resolver.fetch(uri) is live


class _UninitializedServer:
    @property
    def workspace(self):
        raise RuntimeError("workspace is not available before initialize")


def test_live_documents_before_initialize():
    documents = LiveDocuments(_UninitializedServer())

    assert documents.get("file:///a.json") is None
    assert documents.keys() == []
    assert "file:///a.json" not in documents


def test_live_documents_reads_workspace_table():
    class Workspace:
        text_documents = {"file:///a.json": "document"}

    class Server:
        workspace = Workspace()

    documents = LiveDocuments(Server())

    assert documents.get("file:///a.json") == "document"
    assert documents.keys() == ["file:///a.json"]
    assert "file:///a.json" in documents
