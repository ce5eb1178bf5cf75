"""Client settings for the JSON Schema language server."""

import logging

from lsprotocol import types

from jsls.config.settings import SETTINGS_SECTION

from .base import Capabilities, Feature
from ..utils.pubsub import Messages


logger = logging.getLogger(__name__)


class ConfigurationFeature(Feature):
    """
    Keeps the shared ``SettingsStore`` in step with the client.

    Settings are pulled lazily with ``workspace/configuration``. A
    ``workspace/didChangeConfiguration`` notification replaces the cache with
    the pushed section, or drops it so the next read pulls again.
    """

    name = "configuration"

    def __init__(self, context):
        super().__init__(context)
        self._dynamic_registration = False

    def load(self, connection, documents) -> None:
        self.subscribe(Messages.CONFIGURATION_CHANGED, self._configuration_changed)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        workspace = params.capabilities.workspace
        self.context.settings.supports_configuration = bool(workspace and workspace.configuration)
        self._dynamic_registration = bool(
            workspace
            and workspace.did_change_configuration
            and workspace.did_change_configuration.dynamic_registration
        )
        return {}

    async def on_initialized(self, connection, documents) -> None:
        if not self._dynamic_registration:
            return

        await connection.register_capability_async(
            types.RegistrationParams(
                registrations=[
                    types.Registration(
                        id=f"{SETTINGS_SECTION}.didChangeConfiguration",
                        method=types.WORKSPACE_DID_CHANGE_CONFIGURATION,
                        register_options={"section": SETTINGS_SECTION},
                    )
                ]
            )
        )
        logger.info("Registered for configuration changes")

    def on_shutdown(self, connection, documents) -> None:
        self.unsubscribe_all()
        self.context.settings.clear()

    def _configuration_changed(self, message: str, params: types.DidChangeConfigurationParams) -> None:
        settings = params.settings
        if isinstance(settings, dict) and SETTINGS_SECTION in settings:
            self.context.settings.update(settings[SETTINGS_SECTION])
        else:
            # Pull model: the client only signals that something changed
            self.context.settings.clear()
