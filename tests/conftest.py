from __future__ import annotations

import queue
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence, Set, Tuple
from unittest.mock import MagicMock

import pytest

from devwatch.events import FileEvent
from devwatch.source import STREAM_CLOSED


class FakeEventSource:
    """In-memory notification source fed directly by tests."""

    def __init__(self) -> None:
        self.events: "queue.Queue[Any]" = queue.Queue()
        self.added: List[str] = []
        self.fail_on: Set[str] = set()
        self.started = False
        self.closed = False
        self.alive = True

    def add(self, path: str) -> None:
        if path in self.fail_on:
            raise OSError(f"cannot watch {path}")
        self.added.append(path)

    def start(self) -> None:
        self.started = True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.events.put(STREAM_CLOSED)

    def is_alive(self) -> bool:
        return self.alive and not self.closed

    def emit(self, path: Any, op: str, is_directory: bool = False) -> None:
        self.events.put(FileEvent.of(str(path), op, is_directory))


class RecordingHandler:
    """Handler that records every event it receives."""

    def __init__(
        self,
        extensions: Sequence[str] = (".go",),
        main_input: str = "main.go",
        fail: bool = False,
        name: str = "recording",
        unobserved: Sequence[str] = (),
        on_event: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.extensions = list(extensions)
        self.main_input = main_input
        self.fail = fail
        self.name = name
        self.unobserved = list(unobserved)
        self.on_event = on_event
        self.calls: List[Tuple[str, str, str, str]] = []
        self._lock = threading.Lock()

    def supported_extensions(self) -> List[str]:
        return self.extensions

    def main_input_path(self) -> str:
        return self.main_input

    def unobserved_files(self) -> List[str]:
        return self.unobserved

    def new_file_event(self, file_name: str, extension: str, path: str, event: str) -> None:
        with self._lock:
            self.calls.append((file_name, extension, path, event))
        if self.on_event is not None:
            self.on_event(path)
        if self.fail:
            raise RuntimeError(f"{self.name} failed")

    @property
    def count(self) -> int:
        with self._lock:
            return len(self.calls)


class MappingOracle:
    """Ownership oracle answering from a {main_input: {paths}} mapping."""

    def __init__(self, owned: Dict[str, Set[str]], errors: Sequence[str] = ()) -> None:
        self.owned = owned
        self.errors = set(errors)
        self.queries: List[Tuple[str, str, str]] = []

    def is_owned(self, main_input_path: str, file_path: str, event: str) -> bool:
        self.queries.append((main_input_path, file_path, event))
        if main_input_path in self.errors:
            raise RuntimeError(f"cannot resolve {main_input_path}")
        return file_path in self.owned.get(main_input_path, set())


class ReloadCounter:
    def __init__(self) -> None:
        self.count = 0
        self.times: List[float] = []
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            self.count += 1
            self.times.append(time.monotonic())


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Fixture for a temporary directory using tempfile.TemporaryDirectory."""
    with tempfile.TemporaryDirectory() as tmpdirname:
        yield Path(tmpdirname).resolve()


@pytest.fixture
def fake_source() -> FakeEventSource:
    return FakeEventSource()


@pytest.fixture
def reload_counter() -> ReloadCounter:
    return ReloadCounter()


@pytest.fixture
def mock_monotonic(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Mock time.monotonic for deterministic timing."""
    mock = MagicMock(return_value=1000.0)
    monkeypatch.setattr("time.monotonic", mock)
    return mock


@pytest.fixture
def go_file(temp_dir: Path) -> Path:
    """A Go source file inside the project root."""
    f = temp_dir / "main.go"
    f.write_text("package main\n\nfunc main() {}\n", encoding="utf-8")
    return f
