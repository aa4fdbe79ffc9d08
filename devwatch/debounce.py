"""Content-aware debounce for per-path filesystem events.

Operating systems and editors frequently emit several notifications for one
save. A purely time-based debounce would drop genuine rapid edits, while
hashing every event would read the file even when events are far apart. The
tracker therefore only hashes when an event arrives within the debounce
window of the previous processed event for the same path:

    * no record               -> process
    * outside the window      -> process
    * inside, content differs -> process (a real rapid edit)
    * inside, content equal   -> skip (duplicate notification)

Records are written *after* an event has been dispatched, so the stored
fingerprint reflects any rewrite performed by the handlers themselves.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections import OrderedDict
from typing import Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["DEFAULT_DEBOUNCE_SECONDS", "UNREADABLE", "DebounceRecord", "DebounceTracker", "fingerprint"]

DEFAULT_DEBOUNCE_SECONDS = 0.05
_CHUNK_SIZE = 64 * 1024

# Fingerprint of a file that could not be read. Never equal to any fingerprint.
UNREADABLE = None


def fingerprint(path: str) -> Optional[bytes]:
    """Compute the SHA-256 digest of a file's full content.

    Args:
        path (str): The file to hash.

    Returns:
        Optional[bytes]: The 32-byte digest, or ``UNREADABLE`` if the file
        cannot be opened or read.
    """
    hasher = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                hasher.update(chunk)
    except OSError:
        return UNREADABLE
    return hasher.digest()


def _same_content(previous: Optional[bytes], current: Optional[bytes]) -> bool:
    if previous is UNREADABLE or current is UNREADABLE:
        return False
    return previous == current


class DebounceRecord(NamedTuple):
    observed_at: float
    fingerprint: Optional[bytes]


class DebounceTracker:
    """Track the last processed event per path.

    Attributes:
        window (float): Debounce window in seconds.
        max_records (Optional[int]): Optional bound on tracked paths. The least
            recently recorded path is evicted when exceeded.
    """

    def __init__(
        self,
        window: float = DEFAULT_DEBOUNCE_SECONDS,
        max_records: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        hasher: Callable[[str], Optional[bytes]] = fingerprint,
    ) -> None:
        """Initialize the tracker.

        Args:
            window (float): Debounce window in seconds.
            max_records (Optional[int]): Maximum number of tracked paths, or None
                for an unbounded map.
            clock (Callable[[], float]): Monotonic clock used by callers that
                do not pass ``now`` explicitly.
            hasher (Callable[[str], Optional[bytes]]): Content fingerprint function.
        """
        if window < 0:
            raise ValueError(f"Debounce window must be non-negative, got {window}")
        if max_records is not None and max_records < 1:
            raise ValueError(f"max_records must be positive, got {max_records}")
        self.window = window
        self.max_records = max_records
        self.clock = clock
        self._hasher = hasher
        self._records: "OrderedDict[str, DebounceRecord]" = OrderedDict()
        self.skipped = 0

    def should_process(self, path: str, now: Optional[float] = None) -> bool:
        """Decide whether an event for ``path`` is new work or a duplicate.

        The content is only hashed when the event falls inside the window.

        Args:
            path (str): Absolute path of the changed file.
            now (Optional[float]): Event time; defaults to ``clock()``.

        Returns:
            bool: True if the event should be dispatched.
        """
        record = self._records.get(path)
        if record is None:
            return True

        if now is None:
            now = self.clock()
        if now - record.observed_at > self.window:
            return True

        if _same_content(record.fingerprint, self._hasher(path)):
            self.skipped += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Skipping duplicate notification for {path}")
            return False
        return True

    def record(self, path: str, now: Optional[float] = None) -> DebounceRecord:
        """Store the post-dispatch state for ``path``.

        Must be called only after every handler has finished with the event.

        Args:
            path (str): Absolute path of the processed file.
            now (Optional[float]): The time the event was observed.

        Returns:
            DebounceRecord: The stored record.
        """
        if now is None:
            now = self.clock()
        entry = DebounceRecord(now, self._hasher(path))
        self._records[path] = entry
        self._records.move_to_end(path)
        if self.max_records is not None:
            while len(self._records) > self.max_records:
                self._records.popitem(last=False)
        return entry

    def get(self, path: str) -> Optional[DebounceRecord]:
        return self._records.get(path)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"<DebounceTracker window={self.window} records={len(self._records)}>"
