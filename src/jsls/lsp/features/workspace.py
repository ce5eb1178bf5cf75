"""Workspace folders, text synchronization and file watching."""

import logging
from typing import List

from lsprotocol import types

from .base import Capabilities, Feature
from ..utils.pubsub import Messages


logger = logging.getLogger(__name__)

WATCHER_REGISTRATION_ID = "jsls.watchedFiles"


class WorkspaceFeature(Feature):
    """
    Tracks the workspace and keeps the inactive document store fresh.

    Files changed on disk are invalidated in the resolver so the next fetch
    reads them again. Deleted files are invalidated the same way.
    """

    name = "workspace"

    def __init__(self, context):
        super().__init__(context)
        self._workspace_folder_support = False
        self._watch_support = False

    def load(self, connection, documents) -> None:
        self.subscribe(Messages.WATCHED_FILES_CHANGED, self._files_changed)
        self.subscribe(Messages.WORKSPACE_FOLDERS_CHANGED, self._folders_changed)

    def on_initialize(self, params: types.InitializeParams) -> Capabilities:
        workspace = params.capabilities.workspace
        self._workspace_folder_support = bool(workspace and workspace.workspace_folders)
        self._watch_support = bool(
            workspace
            and workspace.did_change_watched_files
            and workspace.did_change_watched_files.dynamic_registration
        )

        if params.workspace_folders:
            self.context.workspace_folders.add(params.workspace_folders)
        elif params.root_uri:
            self.context.workspace_folders.add(
                [types.WorkspaceFolder(uri=params.root_uri, name=params.root_uri.rsplit("/", 1)[-1])]
            )

        capabilities: Capabilities = {
            "textDocumentSync": {
                "openClose": True,
                "change": types.TextDocumentSyncKind.Incremental.value,
            }
        }
        if self._workspace_folder_support:
            capabilities["workspace"] = {
                "workspaceFolders": {
                    "supported": True,
                    "changeNotifications": True,
                }
            }
        return capabilities

    async def on_initialized(self, connection, documents) -> None:
        if not self._watch_support:
            logger.info("Client cannot watch files; disk changes will not be noticed")
            return

        await connection.register_capability_async(
            types.RegistrationParams(
                registrations=[
                    types.Registration(
                        id=WATCHER_REGISTRATION_ID,
                        method=types.WORKSPACE_DID_CHANGE_WATCHED_FILES,
                        register_options=types.DidChangeWatchedFilesRegistrationOptions(
                            watchers=[types.FileSystemWatcher(glob_pattern="**/*")]
                        ),
                    )
                ]
            )
        )
        logger.info("Registered workspace file watcher")

    def on_shutdown(self, connection, documents) -> None:
        self.unsubscribe_all()

    def _files_changed(self, message: str, params: types.DidChangeWatchedFilesParams) -> List[str]:
        invalidated = []
        for change in params.changes:
            if self.resolver.invalidate(change.uri):
                invalidated.append(change.uri)
        if invalidated:
            logger.info(f"Invalidated {len(invalidated)} changed documents")
        return invalidated

    def _folders_changed(self, message: str, params: types.DidChangeWorkspaceFoldersParams) -> None:
        self.context.workspace_folders.add(params.event.added)
        self.context.workspace_folders.remove(params.event.removed)
