import json

import pytest

from jsls.lsp.features.diagnostics.diagnostics import DiagnosticsFeature, DiagnosticsService
from jsls.lsp.utils.dialects import DialectRegistry


CUSTOM_DIALECT = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://example.com/dialect/workspace",
    "$vocabulary": {
        "https://json-schema.org/draft/2020-12/vocab/core": True,
        "https://json-schema.org/draft/2020-12/vocab/validation": True,
    },
    "$dynamicAnchor": "meta",
    "allOf": [
        {"$ref": "https://json-schema.org/draft/2020-12/meta/core"},
        {"$ref": "https://json-schema.org/draft/2020-12/meta/validation"},
    ],
}


@pytest.fixture
def custom_dialect():
    return json.loads(json.dumps(CUSTOM_DIALECT))


@pytest.fixture
def diagnostics_service():
    return DiagnosticsService(DialectRegistry())


@pytest.fixture
def diagnostics(context, connection):
    feature = DiagnosticsFeature(context)
    feature.load(connection, None)
    yield feature
    feature.on_shutdown(connection, None)


@pytest.fixture
def workspace_dir(tmp_path):
    """A workspace with schemas, non-schemas and an ignored directory."""
    (tmp_path / "nested").mkdir()
    (tmp_path / "node_modules").mkdir()

    (tmp_path / "valid.schema.json").write_text(
        json.dumps({"$schema": "http://json-schema.org/draft-07/schema#", "type": "object"})
    )
    (tmp_path / "nested" / "schema.json").write_text('{"$schema": "http://json-schema.org/draft-07/schema#", "type": 5}')
    (tmp_path / "data.json").write_text('{"not": "a schema"}')
    (tmp_path / "node_modules" / "dep.schema.json").write_text("{}")
    (tmp_path / "dialect.schema.json").write_text(json.dumps(CUSTOM_DIALECT))
    (tmp_path / "uses-dialect.schema.json").write_text(
        json.dumps({"$schema": CUSTOM_DIALECT["$id"], "type": "string"})
    )
    return tmp_path
