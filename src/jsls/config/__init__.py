from jsls.config._types import DocumentSettings
from jsls.config.settings import (
    DEFAULT_SCHEMA_FILE_PATTERNS,
    SETTINGS_SECTION,
    SchemaFileMatcher,
    SettingsError,
    SettingsStore,
    load_settings,
)

__all__ = [
    "DocumentSettings",
    "DEFAULT_SCHEMA_FILE_PATTERNS",
    "SETTINGS_SECTION",
    "SchemaFileMatcher",
    "SettingsError",
    "SettingsStore",
    "load_settings",
]
