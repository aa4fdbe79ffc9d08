"""Path exclusion predicate.

A path is excluded when any of its segments is hidden (starts with ``.``) or
exactly matches one of the configured excluded names. Matching is done per
segment, never by substring, so ``github-integration`` is not excluded by an
entry of ``.git``. Both ``/`` and ``\\`` are treated as separators regardless
of the host platform.
"""

from __future__ import annotations

import logging
import os
import re
from typing import FrozenSet, Iterable, List, Optional

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["ExclusionFilter", "split_segments", "get_file_name"]

_SEPARATORS = re.compile(r"[\\/]+")


def split_segments(path: str) -> List[str]:
    """Split a path into its segments on both Unix and Windows separators.

    Empty segments and ``.`` (current directory) are dropped. ``..`` is kept
    since it is a real navigation segment, and it is not treated as hidden.

    Args:
        path (str): The path to split.

    Returns:
        List[str]: The non-empty path segments in order.
    """
    return [seg for seg in _SEPARATORS.split(path) if seg and seg != "."]


def get_file_name(path: str) -> str:
    """Return the base name of a path.

    Args:
        path (str): A file or directory path.

    Returns:
        str: The last path segment.

    Raises:
        ValueError: If the path has no usable name (e.g. empty or a bare root).
    """
    segments = split_segments(path)
    if not segments:
        raise ValueError(f"Path has no file name: {path!r}")
    return segments[-1]


class ExclusionFilter:
    """Decide whether a path lies inside an ignored location.

    Segments of the project root itself are never considered, so a project
    living under a hidden directory (e.g. ``~/.local/src/app``) is still
    observed.

    Attributes:
        excluded_names (FrozenSet[str]): Exact segment names that are excluded.
        root (Optional[str]): Absolute project root, if known.
    """

    def __init__(
        self,
        excluded_names: Optional[Iterable[str]] = None,
        root: Optional[str] = None,
    ) -> None:
        self.excluded_names: FrozenSet[str] = frozenset(
            name.strip() for name in (excluded_names or ()) if name and name.strip()
        )
        self.root = os.path.abspath(root) if root else None

    def extend(self, names: Iterable[str]) -> None:
        """Add more excluded names.

        Used at startup to merge the files handlers declare as unobserved
        (typically their own build outputs).

        Args:
            names (Iterable[str]): Segment names to exclude.
        """
        added = {n.strip() for n in names if n and n.strip()} - self.excluded_names
        if added:
            logger.debug(f"Excluding additional names: {sorted(added)}")
            self.excluded_names = self.excluded_names | added

    def is_excluded(self, path: str) -> bool:
        """Check whether any segment of the path is hidden or excluded.

        Args:
            path (str): The path to check (absolute or relative).

        Returns:
            bool: True if the path should be ignored.
        """
        for segment in split_segments(self._relative(path)):
            if segment.startswith(".") and segment != "..":
                return True
            if segment in self.excluded_names:
                return True
        return False

    def _relative(self, path: str) -> str:
        if self.root is None:
            return path
        if path == self.root:
            return ""
        prefix = self.root.rstrip(os.sep) + os.sep
        if path.startswith(prefix):
            return path[len(prefix):]
        return path

    def __call__(self, path: str) -> bool:
        return self.is_excluded(path)

    def __repr__(self) -> str:
        return f"<ExclusionFilter excluded={sorted(self.excluded_names)}>"
