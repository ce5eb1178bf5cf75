from .completion import CompletionContext, CompletionFeature
from .if_then_completion import IfThenCompletionFeature
from .keyword_completion import KeywordCompletionFeature
from .schema_completion import TRAILING_HASH_DIALECTS, SchemaCompletionFeature

__all__ = [
    "CompletionContext",
    "CompletionFeature",
    "IfThenCompletionFeature",
    "KeywordCompletionFeature",
    "SchemaCompletionFeature",
    "TRAILING_HASH_DIALECTS",
]
