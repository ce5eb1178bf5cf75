import pytest

from jsls.lsp.features.completion.completion import CompletionFeature
from jsls.lsp.features.completion.if_then_completion import IfThenCompletionFeature
from jsls.lsp.features.completion.keyword_completion import KeywordCompletionFeature
from jsls.lsp.features.completion.schema_completion import SchemaCompletionFeature


@pytest.fixture
def schema_completion(context):
    return SchemaCompletionFeature(context)


@pytest.fixture
def completion_features(context, connection):
    """Completion request handler plus every provider, loaded in host order."""
    features = [
        CompletionFeature(context),
        SchemaCompletionFeature(context),
        KeywordCompletionFeature(context),
        IfThenCompletionFeature(context),
    ]
    for feature in features:
        feature.load(connection, None)
    yield features
    for feature in features:
        feature.on_shutdown(connection, None)


@pytest.fixture
def completion(completion_features):
    return completion_features[0]


@pytest.fixture
def if_then_completion(context):
    return IfThenCompletionFeature(context)
