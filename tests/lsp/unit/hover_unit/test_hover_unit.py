import json

import pytest
from lsprotocol import types

from jsls.lsp.features.hover import HoverFeature, keyword_description


DRAFT_2020_12 = "https://json-schema.org/draft/2020-12/schema"


@pytest.fixture
def hover(context, connection):
    feature = HoverFeature(context)
    feature.load(connection, None)
    yield feature
    feature.on_shutdown(connection, None)


def position_of(text: str, marker: str, shift: int = 0) -> types.Position:
    return types.Position(line=0, character=text.index(marker) + shift)


def test_hover_capability(hover):
    assert hover.on_initialize(types.InitializeParams(capabilities=types.ClientCapabilities())) == {"hoverProvider": True}


def test_hover_handler_registered(hover, connection):
    assert types.TEXT_DOCUMENT_HOVER in connection.features


async def test_hover_on_keyword(hover, live_documents):
    text = '{"$schema": "%s", "minLength": 1}' % DRAFT_2020_12
    live_documents.add("file:///a.schema.json", text)

    result = await hover.hover("file:///a.schema.json", position_of(text, '"minLength"', 3))

    assert result.contents.kind == types.MarkupKind.Markdown
    assert result.contents.value == keyword_description("minLength")
    start = text.index('"minLength"')
    assert result.range == types.Range(
        start=types.Position(line=0, character=start),
        end=types.Position(line=0, character=start + len('"minLength"')),
    )


async def test_hover_in_subschema(hover, live_documents):
    text = '{"$schema": "http://json-schema.org/draft-07/schema#", "properties": {"age": {"minimum": 0}}}'
    live_documents.add("file:///b.schema.json", text)

    result = await hover.hover("file:///b.schema.json", position_of(text, '"minimum"', 1))

    assert "greater than or equal" in result.contents.value


@pytest.mark.parametrize(
    "marker",
    [
        '"age"',  # a name in the properties map
        " 0}",  # a value
        '"x-custom"',  # not a keyword anyone describes
    ],
)
async def test_no_hover(hover, live_documents, marker):
    text = '{"$schema": "%s", "x-custom": 1, "properties": {"age": {"minimum": 0}}}' % DRAFT_2020_12
    live_documents.add("file:///c.schema.json", text)

    assert await hover.hover("file:///c.schema.json", position_of(text, marker, 1)) is None


async def test_no_hover_without_dialect(hover, live_documents):
    text = '{"type": "object"}'
    live_documents.add("file:///d.schema.json", text)

    assert await hover.hover("file:///d.schema.json", position_of(text, '"type"', 1)) is None


async def test_default_dialect_enables_hover(hover, context, live_documents):
    context.settings.default_dialect = DRAFT_2020_12
    text = '{"type": "object"}'
    live_documents.add("file:///e.schema.json", text)

    result = await hover.hover("file:///e.schema.json", position_of(text, '"type"', 1))

    assert result is not None


async def test_custom_dialect_describes_its_keywords(hover, context, live_documents):
    dialect = context.dialects.register({
        "$id": "https://example.com/dialect/units",
        "$vocabulary": {"https://json-schema.org/draft/2020-12/vocab/core": True},
        "properties": {"unit": {"type": "string", "description": "Unit of measure for a number"}},
    })
    text = json.dumps({"$schema": dialect, "unit": "kg"})
    live_documents.add("file:///f.schema.json", text)

    result = await hover.hover("file:///f.schema.json", position_of(text, '"unit"', 1))

    assert result.contents.value == "Unit of measure for a number"


async def test_unresolvable_document_has_no_hover(hover):
    assert await hover.hover("file:///does/not/exist.schema.json", types.Position(line=0, character=0)) is None


def test_keyword_description_prefers_meta_schema():
    meta_schema = {"properties": {"type": {"description": "Overridden"}}}

    assert keyword_description("type", meta_schema) == "Overridden"
    assert keyword_description("type").startswith("Requires the instance")
    assert keyword_description("no-such-keyword") is None
