"""Workspace folder tracking and schema file discovery."""

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from lsprotocol import types
from pygls.uris import from_fs_path, to_fs_path


logger = logging.getLogger(__name__)

# Directories never worth walking for schemas
SKIPPED_DIRECTORIES = {".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv"}


class WorkspaceFolders:
    """The set of workspace folders the client has told us about."""

    def __init__(self):
        self._folders: Dict[str, types.WorkspaceFolder] = {}

    def add(self, folders: Optional[Iterable[types.WorkspaceFolder]]) -> None:
        for folder in folders or []:
            self._folders[folder.uri] = folder
            logger.info(f"Added workspace folder {folder.uri}")

    def remove(self, folders: Optional[Iterable[types.WorkspaceFolder]]) -> None:
        for folder in folders or []:
            if self._folders.pop(folder.uri, None) is not None:
                logger.info(f"Removed workspace folder {folder.uri}")

    def uris(self) -> List[str]:
        return list(self._folders)

    def __len__(self) -> int:
        return len(self._folders)

    def files(self, accept: Callable[[str], bool]) -> Iterator[str]:
        """
        Walk every workspace folder and yield the file URIs ``accept`` keeps.

        Args:
            accept: Predicate applied to each file URI

        Yields:
            File URIs in walk order, each at most once
        """
        seen = set()
        for folder_uri in self.uris():
            root = to_fs_path(folder_uri)
            if root is None or not Path(root).is_dir():
                logger.debug(f"Skipping workspace folder {folder_uri}: not a local directory")
                continue

            for dirpath, dirnames, filenames in os.walk(root):
                dirnames[:] = [name for name in dirnames if name not in SKIPPED_DIRECTORIES]
                for filename in filenames:
                    uri = from_fs_path(os.path.join(dirpath, filename))
                    if uri is None or uri in seen:
                        continue
                    seen.add(uri)
                    if accept(uri):
                        yield uri
