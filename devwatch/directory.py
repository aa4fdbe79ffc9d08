"""Directory registration for the notification source.

A single "directory created" notification does not mean the OS is watching the
directories created inside it in the same operation (``mkdir -p a/b/c``). On
every directory creation the whole new subtree is walked and each directory
found is registered.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional, Protocol, Set

from devwatch.events import CREATE
from devwatch.exclusion import ExclusionFilter

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["DirectorySource", "FolderEventObserver", "DirectoryWatcher"]


class DirectorySource(Protocol):
    def add(self, path: str) -> None:
        ...


class FolderEventObserver(Protocol):
    """Receives every surviving directory create/remove notification."""

    def new_folder_event(self, folder_name: str, path: str, event: str) -> Any:
        ...


class DirectoryWatcher:
    """Keep new directory trees under observation.

    Attributes:
        source (DirectorySource): The notification source directories are added to.
        exclusion (ExclusionFilter): Predicate for directories that must not be watched.
        folder_events (Optional[FolderEventObserver]): Optional directory event observer.
    """

    def __init__(
        self,
        source: DirectorySource,
        exclusion: ExclusionFilter,
        folder_events: Optional[FolderEventObserver] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.source = source
        self.exclusion = exclusion
        self.folder_events = folder_events
        self.logger = logger or logging.getLogger(__name__)

    def register(self, path: str, registered: Optional[Set[str]] = None) -> bool:
        """Register one directory with the notification source.

        Args:
            path (str): The directory to observe.
            registered (Optional[Set[str]]): Paths already registered during the
                current walk; ``path`` is skipped if present and added once the
                source accepts it.

        Returns:
            bool: True if the path was handed to the source, False if it had
            already been registered during this walk.

        Raises:
            OSError: If the source cannot observe the path.
        """
        if registered is not None and path in registered:
            return False
        self.source.add(path)
        if registered is not None:
            registered.add(path)
        return True

    def register_tree(self, root: str) -> Set[str]:
        """Register ``root`` and every non-excluded directory beneath it.

        Errors on individual entries are skipped and the walk continues. If the
        root itself cannot be registered nothing beneath it is walked.

        Args:
            root (str): Top of the directory tree.

        Returns:
            Set[str]: The directories registered during this call.
        """
        registered: Set[str] = set()
        try:
            self.register(root, registered)
        except OSError as e:
            self.logger.error(f"Watch: failed to add directory {root}: {e}")
            return registered

        def _on_walk_error(err: OSError) -> None:
            self.logger.debug(f"Watch: skipping unreadable entry while walking {root}: {err}")

        try:
            for dirpath, dirnames, _ in os.walk(root, onerror=_on_walk_error):
                kept = []
                for name in dirnames:
                    child = os.path.join(dirpath, name)
                    if self.exclusion.is_excluded(child):
                        continue
                    kept.append(name)
                    if child == root:
                        continue
                    try:
                        self.register(child, registered)
                    except OSError as e:
                        self.logger.debug(f"Watch: failed to add directory {child}: {e}")
                # Prune excluded directories from the walk.
                dirnames[:] = kept
        except OSError as e:
            self.logger.error(f"Watch: error walking new directory {root}: {e}")

        return registered

    def handle_directory_event(self, folder_name: str, path: str, kind: str) -> None:
        """Handle a notification for a directory.

        The folder-event observer is notified first (failures are logged). On
        creation the new tree is registered.

        Args:
            folder_name (str): Base name of the directory.
            path (str): Full path of the directory.
            kind (str): The event kind.
        """
        if self.folder_events is not None:
            try:
                self.folder_events.new_folder_event(folder_name, path, kind)
            except Exception as e:
                self.logger.error(f"Watch folder event error: {e}")

        if kind == CREATE:
            registered = self.register_tree(path)
            if registered and self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(f"Watch: registered {len(registered)} directories under {path}")

    def __repr__(self) -> str:
        return f"<DirectoryWatcher source={self.source!r}>"
