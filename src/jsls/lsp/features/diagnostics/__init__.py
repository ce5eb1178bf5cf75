from .diagnostics import DiagnosticsFeature, DiagnosticsService

__all__ = ["DiagnosticsFeature", "DiagnosticsService"]
