"""Route file events to the handlers that care about them.

Handlers are selected by file extension. For compiled source files (``.go`` by
default) each candidate handler is additionally checked against an ownership
oracle, so a change only rebuilds the targets that depend on the file.

Every applicable handler is invoked, even after another one fails, so
independent subsystems registered for the same extension are not starved.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, NamedTuple, Optional, Protocol, Sequence, runtime_checkable

from devwatch.events import is_delete

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = [
    "COMPILED_EXTENSION",
    "FilesEventHandler",
    "OwnershipOracle",
    "DispatchResult",
    "EventClassifier",
    "handler_name",
    "unobserved_files",
]

COMPILED_EXTENSION = ".go"


@runtime_checkable
class FilesEventHandler(Protocol):
    """Capability set every registered handler provides.

    ``new_file_event`` signals failure by raising.
    """

    def supported_extensions(self) -> Sequence[str]:
        ...

    def main_input_path(self) -> str:
        ...

    def new_file_event(self, file_name: str, extension: str, path: str, event: str) -> Any:
        ...


class OwnershipOracle(Protocol):
    def is_owned(self, main_input_path: str, file_path: str, event: str) -> bool:
        ...


class DispatchResult(NamedTuple):
    """Outcome of dispatching one event.

    Attributes:
        any_succeeded (bool): At least one applicable handler succeeded.
        compiled_succeeded (bool): At least one owning handler succeeded for a
            compiled source file.
        reload_warranted (bool): Whether the event should schedule a reload.
    """

    any_succeeded: bool = False
    compiled_succeeded: bool = False
    reload_warranted: bool = False


def handler_name(handler: Any) -> str:
    return getattr(handler, "name", None) or type(handler).__name__


def unobserved_files(handlers: Iterable[Any]) -> List[str]:
    """Collect the names handlers ask the watcher to ignore.

    Handlers without an ``unobserved_files`` method contribute nothing.

    Args:
        handlers (Iterable[Any]): The registered handlers.

    Returns:
        List[str]: File or directory names, in handler order, without duplicates.
    """
    names: List[str] = []
    for handler in handlers:
        getter = getattr(handler, "unobserved_files", None)
        if getter is None:
            continue
        try:
            for name in getter() or ():
                if name not in names:
                    names.append(name)
        except Exception as e:
            logger.warning(f"Failed to read unobserved files from {handler_name(handler)}: {e}")
    return names


class EventClassifier:
    """Dispatch file events to applicable, owning handlers.

    Attributes:
        handlers (List[FilesEventHandler]): Registered handlers, in order.
        oracle (Optional[OwnershipOracle]): Ownership oracle for compiled files.
            When None, every applicable handler is treated as owning.
        compiled_extension (str): Extension subject to ownership checks.
    """

    def __init__(
        self,
        handlers: Sequence[FilesEventHandler],
        oracle: Optional[OwnershipOracle] = None,
        compiled_extension: str = COMPILED_EXTENSION,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.handlers: List[FilesEventHandler] = list(handlers)
        self.oracle = oracle
        self.compiled_extension = compiled_extension
        self.logger = logger or logging.getLogger(__name__)
        self.invocations = 0

    def _owns(self, handler: FilesEventHandler, path: str, kind: str) -> bool:
        if self.oracle is None:
            return True
        try:
            return bool(self.oracle.is_owned(handler.main_input_path(), path, kind))
        except Exception as e:
            self.logger.debug(f"Ownership check failed for {handler_name(handler)} on {path}, skipping: {e}")
            return False

    def dispatch(self, file_name: str, path: str, extension: str, kind: str) -> DispatchResult:
        """Invoke every applicable handler for one event.

        Args:
            file_name (str): Base name of the changed file.
            path (str): Full path of the changed file.
            extension (str): File extension including the dot (e.g. ".go").
            kind (str): The event kind.

        Returns:
            DispatchResult: Which handlers succeeded and whether to reload.
        """
        is_compiled = extension == self.compiled_extension
        check_ownership = is_compiled and not is_delete(kind)
        any_succeeded = False
        compiled_succeeded = False

        for handler in self.handlers:
            if extension not in handler.supported_extensions():
                continue

            if check_ownership and not self._owns(handler, path, kind):
                continue

            self.invocations += 1
            try:
                handler.new_file_event(file_name, extension, path, kind)
            except Exception as e:
                self.logger.warning(f"Handler {handler_name(handler)} failed for {path}: {e}")
                continue

            any_succeeded = True
            if is_compiled:
                compiled_succeeded = True

        reload_warranted = compiled_succeeded if is_compiled else any_succeeded
        return DispatchResult(any_succeeded, compiled_succeeded, reload_warranted)

    def __repr__(self) -> str:
        return f"<EventClassifier handlers={len(self.handlers)} compiled={self.compiled_extension}>"
