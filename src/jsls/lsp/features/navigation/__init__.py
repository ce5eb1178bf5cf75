from .definition import DefinitionFeature
from .references import ReferencesFeature

__all__ = ["DefinitionFeature", "ReferencesFeature"]
