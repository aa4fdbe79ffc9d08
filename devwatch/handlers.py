"""Concrete file event handlers."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from typing import List, Optional, Sequence, Union

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["HandlerError", "CommandHandler"]


class HandlerError(RuntimeError):
    """Raised when a handler fails to process a file event."""


class CommandHandler:
    """Run a build command whenever a supported file changes.

    The command runs in the project root with the changed file exposed through
    the ``DEVWATCH_FILE`` and ``DEVWATCH_EVENT`` environment variables.

    Attributes:
        name (str): Display name used in log messages.
        command (List[str]): The command and its arguments.
        root (str): Working directory for the command.
        timeout (Optional[float]): Max seconds the command may run.
    """

    def __init__(
        self,
        command: Union[str, Sequence[str]],
        root: str,
        extensions: Sequence[str] = (".go",),
        main_input: str = "",
        unobserved: Sequence[str] = (),
        name: str = "build",
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize the handler.

        Args:
            command (Union[str, Sequence[str]]): Command line, split with shlex
                when given as a string.
            root (str): Project root; the command's working directory.
            extensions (Sequence[str]): File extensions this handler reacts to.
            main_input (str): Main input file relative to the root, used as
                the ownership key for compiled sources.
            unobserved (Sequence[str]): Names the watcher should ignore,
                typically the command's own outputs.
            name (str): Display name.
            timeout (Optional[float]): Max seconds the command may run.
        """
        self.command: List[str] = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("CommandHandler requires a non-empty command")
        self.root = root
        self._extensions = [e if e.startswith(".") else f".{e}" for e in extensions]
        self._main_input = main_input
        self._unobserved = list(unobserved)
        self.name = name
        self.timeout = timeout
        self.runs = 0

    def supported_extensions(self) -> List[str]:
        return self._extensions

    def main_input_path(self) -> str:
        return self._main_input

    def unobserved_files(self) -> List[str]:
        return self._unobserved

    def new_file_event(self, file_name: str, extension: str, path: str, event: str) -> None:
        """Run the command for one file event.

        Args:
            file_name (str): Base name of the changed file.
            extension (str): File extension.
            path (str): Full path of the changed file.
            event (str): The event kind.

        Raises:
            HandlerError: If the command cannot start, times out or exits non-zero.
        """
        env = dict(os.environ, DEVWATCH_FILE=path, DEVWATCH_EVENT=event)
        logger.info(f"[{self.name}] {event} {file_name}: running {shlex.join(self.command)}")
        start = time.monotonic()
        try:
            result = subprocess.run(
                self.command,
                cwd=self.root,
                env=env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise HandlerError(f"{self.name} timed out after {self.timeout}s") from e
        except OSError as e:
            raise HandlerError(f"{self.name} could not start: {e}") from e
        finally:
            self.runs += 1

        elapsed = time.monotonic() - start
        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise HandlerError(f"{self.name} exited with status {result.returncode}: {output}")
        logger.info(f"[{self.name}] done in {elapsed:.2f}s")

    def __repr__(self) -> str:
        return f"<CommandHandler name={self.name} extensions={self._extensions}>"
