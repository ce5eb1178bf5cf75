import pytest

from jsls.lsp.features.base import Feature


class RecordingFeature(Feature):
    """Feature that records every lifecycle call into a shared journal."""

    def __init__(self, context, name, journal, capabilities=None, fail_on=()):
        super().__init__(context)
        self.name = name
        self.journal = journal
        self.capabilities = capabilities or {}
        self.fail_on = set(fail_on)

    def _record(self, hook):
        self.journal.append((self.name, hook))
        if hook in self.fail_on:
            raise RuntimeError(f"{self.name} failed in {hook}")

    def load(self, connection, documents):
        self._record("load")

    def on_initialize(self, params):
        self._record("on_initialize")
        return self.capabilities

    async def on_initialized(self, connection, documents):
        self._record("on_initialized")

    def on_shutdown(self, connection, documents):
        self._record("on_shutdown")


@pytest.fixture
def journal():
    return []


@pytest.fixture
def make_feature(context, journal):
    def factory(name, **kwargs):
        return RecordingFeature(context, name, journal, **kwargs)
    return factory
