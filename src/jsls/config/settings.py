import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, cast
from urllib.parse import urlparse

from jsonschema import ValidationError, validate
from lsprotocol import types
from pathspec import GitIgnoreSpec
from pygls.uris import to_fs_path

from jsls.config._types import DocumentSettings

logger = logging.getLogger(__name__)

__all__ = ["load_settings", "SchemaFileMatcher", "SettingsError", "SettingsStore"]

SETTINGS_SECTION = "jsonSchemaLanguageServer"
DEFAULT_SCHEMA_FILE_PATTERNS = ["*.schema.json", "schema.json"]

_SCHEMA_PATH = Path(__file__).parent / "schemas" / "settings-schema-1.json"
_settings_schema: Optional[Dict[str, Any]] = None


class SettingsError(ValueError):
    """Raised when client settings do not match the settings schema."""


def _load_schema() -> Dict[str, Any]:
    global _settings_schema
    if _settings_schema is None:
        with open(_SCHEMA_PATH) as schema_file:
            _settings_schema = json.load(schema_file)
    return _settings_schema


def _apply_defaults(settings: Dict[str, Any], default_dialect: Optional[str] = None) -> DocumentSettings:
    """Apply default values to the client settings"""
    # Create a copy to avoid modifying the input
    settings = settings.copy()

    if not settings.get("schemaFilePatterns"):
        settings["schemaFilePatterns"] = list(DEFAULT_SCHEMA_FILE_PATTERNS)
    if settings.get("defaultDialect") is None:
        settings["defaultDialect"] = default_dialect

    return cast(DocumentSettings, settings)


def load_settings(raw: Optional[Any], default_dialect: Optional[str] = None) -> DocumentSettings:
    """Validate client settings and fill in defaults.

    Args:
        raw: The "jsonSchemaLanguageServer" section sent by the client, or None
        default_dialect: Dialect to use when the client does not choose one

    Returns:
        The validated settings

    Raises:
        SettingsError: If the settings do not match the settings schema
    """
    if raw is None:
        raw = {}

    try:
        validate(instance=raw, schema=_load_schema())
    except ValidationError as e:
        raise SettingsError(f"Settings validation error: {e.message}")

    return _apply_defaults(raw, default_dialect)


class SchemaFileMatcher:
    """Decides which file URIs are schemas using gitignore-style patterns."""

    def __init__(self, patterns: Sequence[str]):
        self.patterns = list(patterns)
        self._spec = GitIgnoreSpec.from_lines(self.patterns)

    def matches(self, uri: str) -> bool:
        if urlparse(uri).scheme != "file":
            return False
        path = to_fs_path(uri)
        if path is None:
            return False
        return self._spec.match_file(Path(path).as_posix())


class SettingsStore:
    """
    Cached client settings.

    Settings are pulled from the client with ``workspace/configuration`` the
    first time they are needed and kept until ``clear`` is called. Clients
    without that request get the defaults.
    """

    def __init__(self, default_dialect: Optional[str] = None):
        self.default_dialect = default_dialect
        self.supports_configuration = False
        self._settings: Optional[DocumentSettings] = None
        self._matcher: Optional[SchemaFileMatcher] = None

    async def get(self, connection) -> DocumentSettings:
        """Get the current settings, asking the client if none are cached."""
        if self._settings is None:
            raw = None
            if self.supports_configuration:
                result: List[Any] = await connection.get_configuration_async(
                    types.WorkspaceConfigurationParams(
                        items=[types.ConfigurationItem(section=SETTINGS_SECTION)]
                    )
                )
                raw = result[0] if result else None
            self.update(raw)

        return cast(DocumentSettings, self._settings)

    def update(self, raw: Optional[Any]) -> DocumentSettings:
        """Replace the cached settings with ``raw``, falling back to defaults."""
        try:
            settings = load_settings(raw, self.default_dialect)
        except SettingsError as e:
            logger.warning(f"Ignoring invalid settings: {e}")
            settings = load_settings(None, self.default_dialect)

        self._settings = settings
        self._matcher = None
        logger.debug(f"Settings updated: {settings}")
        return settings

    def clear(self) -> None:
        self._settings = None
        self._matcher = None

    async def matcher(self, connection) -> SchemaFileMatcher:
        """Get the schema file matcher for the current settings."""
        if self._matcher is None:
            settings = await self.get(connection)
            self._matcher = SchemaFileMatcher(settings["schemaFilePatterns"])
        return self._matcher

    async def is_schema(self, connection, uri: str) -> bool:
        """Check whether ``uri`` names a schema file under the current settings."""
        return (await self.matcher(connection)).matches(uri)
