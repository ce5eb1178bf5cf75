"""Shared fakes for the LSP unit tests."""

from typing import Any, Dict, List, Optional, Tuple

import pytest
from pygls.workspace import TextDocument

from jsls.lsp.features.base import FeatureContext
from jsls.lsp.utils.documents import DocumentResolver
from jsls.lsp.utils.pubsub import MessageBus


class FakeConnection:
    """Stands in for the pygls server handed to features."""

    def __init__(self, configuration: Optional[Any] = None):
        self.features: Dict[str, Any] = {}
        self.published: List[Tuple[str, list, Optional[int]]] = []
        self.registrations: List[Any] = []
        self.configuration = configuration
        self.configuration_requests: List[Any] = []

    def feature(self, name, options=None):
        def decorator(f):
            self.features[name] = f
            return f
        return decorator

    def publish_diagnostics(self, uri, diagnostics, version=None):
        self.published.append((uri, list(diagnostics), version))

    async def register_capability_async(self, params):
        self.registrations.append(params)

    async def get_configuration_async(self, params):
        self.configuration_requests.append(params)
        return [self.configuration]

    def diagnostics_for(self, uri) -> Optional[list]:
        """Most recent diagnostics published for ``uri``."""
        for published_uri, diagnostics, _ in reversed(self.published):
            if published_uri == uri:
                return diagnostics
        return None


class FakeLiveDocuments:
    """Dict-backed live-documents table."""

    def __init__(self):
        self._documents: Dict[str, TextDocument] = {}
        self.lookups: List[str] = []

    def add(self, uri: str, text: str, version: int = 1) -> TextDocument:
        document = TextDocument(uri, source=text, version=version, language_id="json")
        self._documents[uri] = document
        return document

    def remove(self, uri: str) -> None:
        self._documents.pop(uri, None)

    def get(self, uri: str) -> Optional[TextDocument]:
        self.lookups.append(uri)
        return self._documents.get(uri)

    def keys(self) -> List[str]:
        return list(self._documents)


@pytest.fixture
def live_documents():
    return FakeLiveDocuments()


@pytest.fixture
def resolver(live_documents):
    return DocumentResolver(live_documents)


@pytest.fixture
def bus():
    return MessageBus()


@pytest.fixture
def context(bus, resolver):
    return FeatureContext(bus=bus, resolver=resolver)


@pytest.fixture
def connection():
    return FakeConnection()
