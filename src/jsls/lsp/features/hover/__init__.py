from .hover import HoverFeature, keyword_description

__all__ = ["HoverFeature", "keyword_description"]
