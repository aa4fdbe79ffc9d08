"""Default ownership oracle for Go projects.

Answers "does the build target rooted at this main file depend on that file?"
by following in-module imports from the main file's package. Only packages
inside the module declared by ``go.mod`` are followed; standard library and
third-party imports are ignored.

The import graph is recomputed on every query. Projects watched during
development are small and a fresh scan always reflects the latest edit.
"""

from __future__ import annotations

import logging
import os
import re
from collections import deque
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["OwnershipError", "GoImportOracle", "parse_imports", "read_module_path"]

_MODULE_RE = re.compile(r"^\s*module\s+\"?([^\s\"]+)\"?", re.MULTILINE)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"//[^\n]*")
_IMPORT_BLOCK_RE = re.compile(r"\bimport\s*\(([^)]*)\)", re.DOTALL)
_IMPORT_SINGLE_RE = re.compile(r"\bimport\s+(?:[\w.]+\s+)?\"([^\"]+)\"")
_QUOTED_RE = re.compile(r"\"([^\"]+)\"")


class OwnershipError(RuntimeError):
    """Raised when ownership of a file cannot be determined."""


def read_module_path(go_mod: str) -> str:
    """Read the module path declared in a go.mod file.

    Args:
        go_mod (str): Path to the go.mod file.

    Returns:
        str: The module path (e.g. "example.com/app").

    Raises:
        OwnershipError: If the file is missing or declares no module.
    """
    try:
        with open(go_mod, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise OwnershipError(f"Cannot read {go_mod}: {e}") from e
    match = _MODULE_RE.search(_LINE_COMMENT_RE.sub("", content))
    if not match:
        raise OwnershipError(f"No module declaration in {go_mod}")
    return match.group(1)


def parse_imports(source: str) -> List[str]:
    """Extract the import paths from Go source text.

    Handles single imports, grouped imports and aliased, dot and blank imports.
    """
    source = _LINE_COMMENT_RE.sub("", _BLOCK_COMMENT_RE.sub("", source))
    imports: List[str] = []
    for block in _IMPORT_BLOCK_RE.findall(source):
        imports.extend(_QUOTED_RE.findall(block))
    imports.extend(_IMPORT_SINGLE_RE.findall(source))
    return imports


def _package_files(directory: str) -> Iterable[str]:
    try:
        names = sorted(os.listdir(directory))
    except OSError as e:
        logger.debug(f"Cannot list package directory {directory}: {e}")
        return []
    return [
        os.path.join(directory, name)
        for name in names
        if name.endswith(".go") and not name.endswith("_test.go")
    ]


class GoImportOracle:
    """Resolve file ownership by walking a Go module's import graph.

    Attributes:
        root (str): Absolute project root containing go.mod.
    """

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    def module_path(self) -> str:
        return read_module_path(os.path.join(self.root, "go.mod"))

    def _package_dir(self, module: str, import_path: str) -> Optional[str]:
        if import_path == module:
            return self.root
        prefix = module + "/"
        if import_path.startswith(prefix):
            return os.path.join(self.root, *import_path[len(prefix):].split("/"))
        return None

    def packages(self, main_file: str) -> Set[str]:
        """Return every in-module package directory the main file depends on.

        Args:
            main_file (str): Absolute path of the build target's main file.

        Returns:
            Set[str]: Absolute package directories, including the main package.
        """
        module = self.module_path()
        start = os.path.dirname(main_file)
        seen: Set[str] = {start}
        pending = deque([start])
        while pending:
            directory = pending.popleft()
            for go_file in _package_files(directory):
                try:
                    with open(go_file, "r", encoding="utf-8", errors="replace") as f:
                        imports = parse_imports(f.read())
                except OSError as e:
                    logger.debug(f"Cannot read {go_file}: {e}")
                    continue
                for import_path in imports:
                    package_dir = self._package_dir(module, import_path)
                    if package_dir is None or package_dir in seen:
                        continue
                    seen.add(package_dir)
                    pending.append(package_dir)
        return seen

    def is_owned(self, main_input_path: str, file_path: str, event: str) -> bool:
        """Check whether ``file_path`` belongs to the main file's build target.

        Args:
            main_input_path (str): Main file path, relative to the root or absolute.
            file_path (str): The changed file.
            event (str): The event kind.

        Returns:
            bool: True if the target depends on the file.

        Raises:
            OwnershipError: If go.mod or the main file cannot be found.
        """
        main_file = main_input_path
        if not os.path.isabs(main_file):
            main_file = os.path.join(self.root, main_file)
        main_file = os.path.normpath(main_file)
        if not os.path.isfile(main_file):
            raise OwnershipError(f"Main input file not found: {main_file}")

        file_path = os.path.normpath(os.path.abspath(file_path))
        if file_path == main_file:
            return True
        if file_path.endswith("_test.go"):
            return False
        return os.path.dirname(file_path) in self.packages(main_file)

    def __repr__(self) -> str:
        return f"<GoImportOracle root={self.root}>"
