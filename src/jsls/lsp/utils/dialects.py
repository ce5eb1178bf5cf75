"""
Dialect registry backed by the jsonschema library.

A dialect is a JSON Schema specification version identified by the ``$id``
of its meta-schema. The registry starts with every draft the installed
``jsonschema`` supports and grows when the workspace defines its own
meta-schemas.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Set

from jsonschema import (
    Draft4Validator,
    Draft6Validator,
    Draft7Validator,
    Draft201909Validator,
    Draft202012Validator,
)
from jsonschema.validators import create


logger = logging.getLogger(__name__)

BUILTIN_VALIDATORS = (
    Draft4Validator,
    Draft6Validator,
    Draft7Validator,
    Draft201909Validator,
    Draft202012Validator,
)


def normalize_dialect_id(uri: str) -> str:
    """Drop the empty fragment some dialects carry on their identifier."""
    return uri.rstrip("#")


def meta_schema_id(meta_schema: Mapping[str, Any]) -> Optional[str]:
    """Get the identifier a meta-schema declares for itself."""
    uri = meta_schema.get("$id", meta_schema.get("id"))
    if not isinstance(uri, str) or not uri:
        return None
    return normalize_dialect_id(uri)


class DialectRegistry:
    """
    Known dialects and the validator class for each.

    Identifiers are stored without a trailing ``#``; lookups accept either
    form.
    """

    def __init__(self):
        self._validators: Dict[str, Any] = {}
        for validator_cls in BUILTIN_VALIDATORS:
            uri = meta_schema_id(validator_cls.META_SCHEMA)
            if uri:
                self._validators[uri] = validator_cls

    def get_dialect_ids(self) -> List[str]:
        """Get a snapshot of every known dialect identifier."""
        return list(self._validators)

    def has_dialect(self, uri: str) -> bool:
        return normalize_dialect_id(uri) in self._validators

    def validator_for(self, uri: str):
        """Get the validator class for a dialect, or None if unknown."""
        return self._validators.get(normalize_dialect_id(uri))

    def register(self, meta_schema: Mapping[str, Any], base_dialect: Optional[str] = None) -> str:
        """
        Register a custom dialect defined by a meta-schema document.

        The new dialect reuses the keyword implementations of its base
        dialect: ``base_dialect`` when given, otherwise the meta-schema's own
        ``$schema``, otherwise 2020-12.

        Args:
            meta_schema: Meta-schema with an ``$id``
            base_dialect: Dialect whose keyword semantics to reuse

        Returns:
            The registered dialect identifier

        Raises:
            ValueError: If the meta-schema has no identifier
        """
        uri = meta_schema_id(meta_schema)
        if uri is None:
            raise ValueError("Meta-schema has no $id")

        base = self.validator_for(base_dialect or meta_schema.get("$schema") or "")
        if base is None:
            base = Draft202012Validator

        validator_cls = create(
            meta_schema=dict(meta_schema),
            validators=base.VALIDATORS,
            type_checker=base.TYPE_CHECKER,
            format_checker=base.FORMAT_CHECKER,
        )
        known = uri in self._validators
        self._validators[uri] = validator_cls
        logger.info(f"{'Updated' if known else 'Registered'} dialect {uri}")
        return uri

    def keywords(self, uri: str) -> Set[str]:
        """
        Get the schema keywords a dialect understands.

        Combines the keywords with validation behavior and the properties the
        dialect's meta-schema describes.
        """
        validator_cls = self.validator_for(uri)
        if validator_cls is None:
            return set()

        keywords = set(validator_cls.VALIDATORS)
        properties = validator_cls.META_SCHEMA.get("properties")
        if isinstance(properties, dict):
            keywords.update(properties)
        return keywords
