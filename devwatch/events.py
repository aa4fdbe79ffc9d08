"""Filesystem event records shared by the notification source and the loop."""

from __future__ import annotations

from typing import NamedTuple

CREATE = "create"
WRITE = "write"
REMOVE = "remove"
RENAME = "rename"

EVENT_KINDS = frozenset({CREATE, WRITE, REMOVE, RENAME})

_ALIASES = {"delete": REMOVE}

__all__ = [
    "CREATE",
    "WRITE",
    "REMOVE",
    "RENAME",
    "EVENT_KINDS",
    "FileEvent",
    "normalize_kind",
    "is_delete",
]


def normalize_kind(op: str) -> str:
    """Normalize an event op string to one of the known event kinds.

    Matching is case-insensitive and ``delete`` is accepted as an alias for
    ``remove``.

    Args:
        op (str): The raw op string (e.g. "WRITE", "Create").

    Returns:
        str: The canonical event kind.

    Raises:
        ValueError: If the op is not a known event kind.
    """
    kind = op.strip().lower()
    kind = _ALIASES.get(kind, kind)
    if kind not in EVENT_KINDS:
        raise ValueError(f"Unknown event kind: {op!r}")
    return kind


def is_delete(kind: str) -> bool:
    return kind == REMOVE


class FileEvent(NamedTuple):
    """A single notification for a path.

    Attributes:
        path (str): The full path the event refers to.
        kind (str): One of create, write, remove, rename.
        is_directory (bool): Hint from the source that the path is a directory.
            Removed paths cannot be stat'ed, so this is the only way to tell a
            removed directory from a removed file.
    """

    path: str
    kind: str
    is_directory: bool = False

    @classmethod
    def of(cls, path: str, op: str, is_directory: bool = False) -> "FileEvent":
        """Build an event from a raw op string."""
        return cls(path, normalize_kind(op), is_directory)
