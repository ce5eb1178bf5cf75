import pytest
from lsprotocol import types

from jsls.config.settings import (
    DEFAULT_SCHEMA_FILE_PATTERNS,
    SETTINGS_SECTION,
    SchemaFileMatcher,
    SettingsError,
    SettingsStore,
    load_settings,
)


def test_load_settings_defaults():
    settings = load_settings(None)

    assert settings["schemaFilePatterns"] == DEFAULT_SCHEMA_FILE_PATTERNS
    assert settings["defaultDialect"] is None


def test_load_settings_keeps_client_values():
    settings = load_settings(
        {"defaultDialect": "http://json-schema.org/draft-07/schema#", "schemaFilePatterns": ["schemas/**/*.json"]},
        default_dialect="https://json-schema.org/draft/2020-12/schema",
    )

    assert settings["defaultDialect"] == "http://json-schema.org/draft-07/schema#"
    assert settings["schemaFilePatterns"] == ["schemas/**/*.json"]


def test_load_settings_falls_back_to_server_default_dialect():
    settings = load_settings({}, default_dialect="https://json-schema.org/draft/2020-12/schema")

    assert settings["defaultDialect"] == "https://json-schema.org/draft/2020-12/schema"


@pytest.mark.parametrize("raw", [
    {"schemaFilePatterns": "*.json"},
    {"defaultDialect": 7},
    "not an object",
])
def test_load_settings_rejects_invalid_settings(raw):
    with pytest.raises(SettingsError):
        load_settings(raw)


@pytest.mark.parametrize("uri,expected", [
    ("file:///project/person.schema.json", True),
    ("file:///project/nested/deep/schema.json", True),
    ("file:///project/person.json", False),
    ("file:///project/schema.json.bak", False),
    ("untitled:Untitled-1", False),
    ("https://example.com/person.schema.json", False),
])
def test_default_matcher(uri, expected):
    assert SchemaFileMatcher(DEFAULT_SCHEMA_FILE_PATTERNS).matches(uri) is expected


def test_matcher_negation():
    matcher = SchemaFileMatcher(["*.json", "!package.json"])

    assert matcher.matches("file:///project/thing.json")
    assert not matcher.matches("file:///project/package.json")


async def test_store_without_configuration_support_uses_defaults(connection):
    connection.configuration = {"schemaFilePatterns": ["*.json"]}
    store = SettingsStore()

    settings = await store.get(connection)

    assert settings["schemaFilePatterns"] == DEFAULT_SCHEMA_FILE_PATTERNS
    assert len(connection.configuration_requests) == 0


async def test_store_pulls_once(connection):
    connection.configuration = {"schemaFilePatterns": ["*.json"]}
    store = SettingsStore()
    store.supports_configuration = True

    first = await store.get(connection)
    second = await store.get(connection)

    assert first["schemaFilePatterns"] == ["*.json"]
    assert second is first
    assert len(connection.configuration_requests) == 1


async def test_store_clear_pulls_again(connection):
    connection.configuration = {"schemaFilePatterns": ["*.json"]}
    store = SettingsStore()
    store.supports_configuration = True
    await store.get(connection)

    store.clear()
    connection.configuration = {"schemaFilePatterns": ["*.jsonc"]}

    assert (await store.get(connection))["schemaFilePatterns"] == ["*.jsonc"]
    assert len(connection.configuration_requests) == 2


async def test_store_ignores_invalid_settings(connection):
    connection.configuration = {"schemaFilePatterns": 42}
    store = SettingsStore(default_dialect="https://json-schema.org/draft/2020-12/schema")
    store.supports_configuration = True

    settings = await store.get(connection)

    assert settings["schemaFilePatterns"] == DEFAULT_SCHEMA_FILE_PATTERNS
    assert settings["defaultDialect"] == "https://json-schema.org/draft/2020-12/schema"


async def test_store_matcher_follows_updates(connection):
    store = SettingsStore()

    assert await store.is_schema(connection, "file:///p/a.schema.json")
    assert not await store.is_schema(connection, "file:///p/a.json")

    store.update({"schemaFilePatterns": ["*.json"]})

    assert await store.is_schema(connection, "file:///p/a.json")


async def test_store_configuration_request_section(connection):
    store = SettingsStore()
    store.supports_configuration = True
    await store.get(connection)

    assert connection.configuration_requests[0].items == [types.ConfigurationItem(section=SETTINGS_SECTION)]
