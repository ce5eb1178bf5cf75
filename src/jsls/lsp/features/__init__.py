"""LSP features for the JSON Schema language server."""

from typing import List

from .base import Feature, FeatureContext
from .configuration import ConfigurationFeature
from .workspace import WorkspaceFeature
from .diagnostics.diagnostics import DiagnosticsFeature
from .completion.completion import CompletionFeature
from .completion.schema_completion import SchemaCompletionFeature
from .completion.keyword_completion import KeywordCompletionFeature
from .completion.if_then_completion import IfThenCompletionFeature
from .hover.hover import HoverFeature
from .navigation.definition import DefinitionFeature
from .navigation.references import ReferencesFeature


def default_features(context: FeatureContext) -> List[Feature]:
    """Build the standard features, in the order the host must run them."""
    return [
        ConfigurationFeature(context),
        WorkspaceFeature(context),
        DiagnosticsFeature(context),
        CompletionFeature(context),
        SchemaCompletionFeature(context),
        KeywordCompletionFeature(context),
        IfThenCompletionFeature(context),
        HoverFeature(context),
        DefinitionFeature(context),
        ReferencesFeature(context),
    ]


__all__ = [
    "Feature",
    "FeatureContext",
    "ConfigurationFeature",
    "WorkspaceFeature",
    "DiagnosticsFeature",
    "CompletionFeature",
    "SchemaCompletionFeature",
    "KeywordCompletionFeature",
    "IfThenCompletionFeature",
    "HoverFeature",
    "DefinitionFeature",
    "ReferencesFeature",
    "default_features",
]
