"""Notification source backed by watchdog.

Watchdog delivers events on its own observer thread. This module translates
them into :class:`~devwatch.events.FileEvent` records and hands them to the
event loop through a single FIFO queue, which carries three kinds of items:

    * ``FileEvent``      - the event stream
    * ``Exception``      - the error stream
    * ``STREAM_CLOSED``  - the source has been closed

Each directory is watched non-recursively; new subdirectories are added
explicitly by the directory watcher as they appear.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from typing import Any, Dict, Optional, Union

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from devwatch.events import CREATE, REMOVE, RENAME, WRITE, FileEvent

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["STREAM_CLOSED", "SourceItem", "WatchdogEventSource"]


class _StreamClosed:
    def __repr__(self) -> str:
        return "STREAM_CLOSED"


STREAM_CLOSED: Any = _StreamClosed()

SourceItem = Union[FileEvent, Exception, _StreamClosed]


def _decode(path: Union[str, bytes]) -> str:
    return os.fsdecode(path)


class _QueueingHandler(FileSystemEventHandler):
    """Translate watchdog events and push them onto the source queue."""

    def __init__(self, events: "queue.Queue[SourceItem]") -> None:
        super().__init__()
        self.events = events

    def dispatch(self, event: FileSystemEvent) -> None:
        try:
            for item in translate(event):
                self.events.put(item)
        except Exception as e:
            # Errors go to the error stream, never into the observer thread.
            self.events.put(e)


def translate(event: FileSystemEvent) -> list:
    """Map a watchdog event to zero or more FileEvents.

    Args:
        event (FileSystemEvent): The watchdog event.

    Returns:
        list: The translated FileEvents, in delivery order.
    """
    event_type = event.event_type
    src = _decode(event.src_path)
    is_dir = event.is_directory

    if event_type == EVENT_TYPE_CREATED:
        return [FileEvent(src, CREATE, is_dir)]
    if event_type == EVENT_TYPE_MODIFIED:
        # Directory mtime changes whenever a child changes; not a content edit.
        if is_dir:
            return []
        return [FileEvent(src, WRITE, False)]
    if event_type == EVENT_TYPE_DELETED:
        return [FileEvent(src, REMOVE, is_dir)]
    if event_type == EVENT_TYPE_MOVED:
        dest = _decode(getattr(event, "dest_path", "") or "")
        items = [FileEvent(src, RENAME, is_dir)]
        if dest:
            items.append(FileEvent(dest, CREATE, is_dir))
        return items
    # opened / closed / closed_no_write
    return []


class WatchdogEventSource:
    """Per-directory notification source over a watchdog Observer.

    Attributes:
        events (queue.Queue): Event stream, error stream and close sentinel.
    """

    def __init__(self, observer: Optional[Any] = None) -> None:
        """Initialize the source.

        Args:
            observer (Optional[Any]): A watchdog observer to use. Defaults to a
                new platform ``Observer``.
        """
        self.events: "queue.Queue[SourceItem]" = queue.Queue()
        self._observer = observer if observer is not None else Observer()
        self._handler = _QueueingHandler(self.events)
        self._watches: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._started = False
        self._closed = False

    def add(self, path: str) -> None:
        """Start observing one directory (non-recursive).

        Adding a path that is already observed is a no-op.

        Args:
            path (str): The directory to observe.

        Raises:
            OSError: If the directory cannot be watched.
            RuntimeError: If the source has been closed.
        """
        path = os.path.abspath(path)
        with self._lock:
            if self._closed:
                raise RuntimeError("Notification source is closed")
            if path in self._watches:
                return
            try:
                watch = self._observer.schedule(self._handler, path, recursive=False)
            except OSError:
                raise
            except Exception as e:
                raise OSError(f"Cannot watch {path}: {e}") from e
            self._watches[path] = watch
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Watching directory: {path}")

    def watched(self) -> list:
        with self._lock:
            return sorted(self._watches)

    def start(self) -> None:
        """Start the observer thread.

        Raises:
            RuntimeError: If the source has been closed.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Notification source is closed")
            if self._started:
                return
            self._observer.start()
            self._started = True
        logger.info(f"Observer started ({type(self._observer).__name__})")

    def is_alive(self) -> bool:
        """Return False once the observer thread has died or the source closed."""
        if self._closed:
            return False
        if not self._started:
            return True
        return self._observer.is_alive()

    def close(self, timeout: float = 5.0) -> None:
        """Stop the observer and close the stream.

        Idempotent. Pushes ``STREAM_CLOSED`` so a waiting consumer wakes up.

        Args:
            timeout (float): Max seconds to wait for the observer thread.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            started = self._started
        if started:
            try:
                self._observer.stop()
                self._observer.join(timeout=timeout)
                if self._observer.is_alive():
                    logger.warning("Observer thread did not terminate within timeout.")
            except Exception as e:
                logger.error(f"Error stopping observer: {e}")
        self.events.put(STREAM_CLOSED)

    def __repr__(self) -> str:
        return f"<WatchdogEventSource watches={len(self._watches)} closed={self._closed}>"
