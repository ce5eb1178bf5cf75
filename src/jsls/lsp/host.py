"""
Feature host - drives registered features through the server lifecycle.

The host owns the ordered feature list and the lifecycle state machine:

    UNINITIALIZED --initialize--> INITIALIZING --initialized--> READY
    READY --shutdown--> SHUTTING_DOWN

It knows nothing about the transport. ``JSLSPServer`` calls into it from the
pygls handlers for ``initialize``, ``initialized`` and ``shutdown``.
"""

import enum
import logging
from typing import Any, Dict, List, Mapping, Sequence

from lsprotocol import types

from .features.base import Capabilities, Feature
from .utils.documents import DocumentTable


logger = logging.getLogger(__name__)


class HostState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"


class FeatureInitializationError(Exception):
    """Raised when a feature fails while declaring its capabilities."""

    def __init__(self, feature: Feature, error: Exception):
        self.feature = feature
        self.error = error
        super().__init__(f"Feature {feature.name!r} failed to initialize: {error}")


def merge_capabilities(base: Mapping[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge two capability declarations.

    Nested objects are merged recursively. On any other conflict the value
    from ``extra`` wins.

    Args:
        base: Capabilities declared so far
        extra: Capabilities declared by a later feature

    Returns:
        A new merged dict; neither input is modified
    """
    merged = dict(base)
    for key, value in extra.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_capabilities(current, value)
        else:
            merged[key] = value
    return merged


class FeatureHost:
    """
    Runs the lifecycle hooks of an ordered list of features.

    Hooks within a phase run in registration order and phases never overlap.
    ``on_initialize`` failures are fatal; ``on_initialized`` and
    ``on_shutdown`` failures are logged and skipped.
    """

    def __init__(self, connection, documents: DocumentTable, features: Sequence[Feature]):
        """
        Initialize the host.

        Args:
            connection: Transport connection handed to every feature
            documents: Live-documents table handed to every feature
            features: Features in invocation order
        """
        self.connection = connection
        self.documents = documents
        self.features: List[Feature] = list(features)
        self.state = HostState.UNINITIALIZED
        self.capabilities: Capabilities = {}

    def initialize(self, params: types.InitializeParams) -> Capabilities:
        """
        Collect and merge every feature's capability declaration.

        Raises:
            FeatureInitializationError: If any feature's ``on_initialize`` raises.
                No capabilities are returned in that case.
        """
        capabilities: Capabilities = {}
        for feature in self.features:
            try:
                declared = feature.on_initialize(params) or {}
            except Exception as e:
                logger.error(f"Initialization failed in {feature.name}: {e}")
                raise FeatureInitializationError(feature, e) from e
            capabilities = merge_capabilities(capabilities, declared)

        self.capabilities = capabilities
        self.state = HostState.INITIALIZING
        logger.info(f"Initialized {len(self.features)} features")
        return capabilities

    def load(self) -> None:
        """Let every feature wire its handlers. Runs synchronously."""
        for feature in self.features:
            feature.load(self.connection, self.documents)
            logger.debug(f"Loaded feature {feature.name}")

    async def finish_initialization(self) -> None:
        """Await every feature's ``on_initialized`` in order, then become ready."""
        for feature in self.features:
            try:
                await feature.on_initialized(self.connection, self.documents)
            except Exception as e:
                logger.error(f"Error in {feature.name} on_initialized: {e}", exc_info=e)

        self.state = HostState.READY
        logger.info("Server ready")

    async def initialized(self) -> None:
        """Run the whole ``initialized`` phase: load, then finish initialization."""
        self.load()
        await self.finish_initialization()

    def shutdown(self) -> None:
        """Call every feature's ``on_shutdown``, continuing past failures."""
        if self.state == HostState.SHUTTING_DOWN:
            return

        self.state = HostState.SHUTTING_DOWN
        for feature in self.features:
            try:
                feature.on_shutdown(self.connection, self.documents)
            except Exception as e:
                logger.error(f"Error in {feature.name} on_shutdown: {e}")
        logger.info("All features shut down")
