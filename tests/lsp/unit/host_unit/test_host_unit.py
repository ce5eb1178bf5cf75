import pytest
from lsprotocol import types

from jsls.lsp.features.base import Feature
from jsls.lsp.host import FeatureHost, FeatureInitializationError, HostState, merge_capabilities


@pytest.fixture
def params():
    return types.InitializeParams(capabilities=types.ClientCapabilities())


def hooks(journal, hook):
    return [name for name, called in journal if called == hook]


def test_merge_capabilities_unions_nested_objects():
    base = {"completionProvider": {"resolveProvider": False}, "hoverProvider": True}
    extra = {"completionProvider": {"triggerCharacters": ['"']}, "definitionProvider": True}

    merged = merge_capabilities(base, extra)

    assert merged == {
        "completionProvider": {"resolveProvider": False, "triggerCharacters": ['"']},
        "hoverProvider": True,
        "definitionProvider": True,
    }
    assert base == {"completionProvider": {"resolveProvider": False}, "hoverProvider": True}, \
        "Inputs must not be modified"


def test_merge_capabilities_later_value_wins():
    merged = merge_capabilities(
        {"textDocumentSync": 1, "completionProvider": {"resolveProvider": False}},
        {"textDocumentSync": 2, "completionProvider": {"resolveProvider": True}},
    )

    assert merged["textDocumentSync"] == 2
    assert merged["completionProvider"] == {"resolveProvider": True}


def test_initialize_merges_in_registration_order(make_feature, journal, connection, live_documents, params):
    host = FeatureHost(connection, live_documents, [
        make_feature("first", capabilities={"textDocumentSync": 1, "hoverProvider": True}),
        make_feature("second", capabilities={"textDocumentSync": 2}),
    ])

    capabilities = host.initialize(params)

    assert capabilities == {"textDocumentSync": 2, "hoverProvider": True}
    assert hooks(journal, "on_initialize") == ["first", "second"]
    assert host.state == HostState.INITIALIZING
    assert journal == [("first", "on_initialize"), ("second", "on_initialize")], \
        "Nothing else runs during initialize"


def test_initialize_failure_is_fatal(make_feature, journal, connection, live_documents, params):
    broken = make_feature("broken", fail_on={"on_initialize"})
    host = FeatureHost(connection, live_documents, [
        make_feature("first", capabilities={"hoverProvider": True}),
        broken,
        make_feature("third"),
    ])

    with pytest.raises(FeatureInitializationError) as exc_info:
        host.initialize(params)

    assert exc_info.value.feature is broken
    assert "broken" in str(exc_info.value)
    assert host.state == HostState.UNINITIALIZED
    assert host.capabilities == {}, "No capabilities are advertised after a failure"
    assert hooks(journal, "on_initialize") == ["first", "broken"]


async def test_initialized_runs_phases_in_order(make_feature, journal, connection, live_documents, params):
    host = FeatureHost(connection, live_documents, [make_feature("a"), make_feature("b"), make_feature("c")])
    host.initialize(params)
    journal.clear()

    await host.initialized()

    assert journal == [
        ("a", "load"), ("b", "load"), ("c", "load"),
        ("a", "on_initialized"), ("b", "on_initialized"), ("c", "on_initialized"),
    ]
    assert host.state == HostState.READY


async def test_ready_after_each_hook_ran_once(make_feature, journal, connection, live_documents, params):
    host = FeatureHost(connection, live_documents, [make_feature("a"), make_feature("b")])
    host.initialize(params)

    host.load()
    assert host.state == HostState.INITIALIZING, "Not ready until on_initialized has been awaited"

    await host.finish_initialization()

    assert host.state == HostState.READY
    assert hooks(journal, "load") == ["a", "b"]
    assert hooks(journal, "on_initialized") == ["a", "b"]


async def test_on_initialized_failure_is_best_effort(make_feature, journal, connection, live_documents, params):
    host = FeatureHost(connection, live_documents, [
        make_feature("flaky", fail_on={"on_initialized"}),
        make_feature("healthy"),
    ])
    host.initialize(params)

    await host.initialized()

    assert hooks(journal, "on_initialized") == ["flaky", "healthy"]
    assert host.state == HostState.READY


def test_shutdown_invokes_every_feature(make_feature, journal, connection, live_documents, params):
    host = FeatureHost(connection, live_documents, [
        make_feature("a", fail_on={"on_shutdown"}),
        make_feature("b"),
    ])
    host.initialize(params)

    host.shutdown()
    host.shutdown()

    assert hooks(journal, "on_shutdown") == ["a", "b"], "Every feature shuts down exactly once"
    assert host.state == HostState.SHUTTING_DOWN


def test_features_receive_connection_and_documents(context, connection, live_documents, params):
    received = []

    class Receiver(Feature):
        name = "receiver"

        def load(self, connection, documents):
            received.append((connection, documents))

        def on_initialize(self, params):
            return {}

        async def on_initialized(self, connection, documents):
            received.append((connection, documents))

        def on_shutdown(self, connection, documents):
            received.append((connection, documents))

    host = FeatureHost(connection, live_documents, [Receiver(context)])
    host.initialize(params)
    host.load()
    host.shutdown()

    assert received == [(connection, live_documents), (connection, live_documents)]


def test_feature_contract_requires_all_hooks(context):
    class Incomplete(Feature):
        def load(self, connection, documents):
            pass

    with pytest.raises(TypeError):
        Incomplete(context)
