"""The event loop tying the pipeline together.

Responsibility:
    ``DevWatch`` is the single consumer of the notification source. For each
    event it filters excluded and vanished paths, hands directories to the
    :class:`~devwatch.directory.DirectoryWatcher`, runs the content-aware
    :class:`~devwatch.debounce.DebounceTracker`, dispatches surviving file
    events through the :class:`~devwatch.classifier.EventClassifier` and arms
    the :class:`~devwatch.reload.ReloadScheduler` when a handler succeeded.

Design:
    - **Synchronous dispatch**: handlers run on the loop thread. A slow build
      blocks the loop; events queue in the source meanwhile and are processed
      in order afterwards.
    - **Two threads**: the loop thread and the reload consumer thread. The
      reload timer is the only state shared between them.
    - **Cooperative exit**: the exit event is checked at the top of every
      iteration, so an in-flight dispatch always runs to completion.

Key Invariants:
    - A path's debounce record is written only after every handler finished.
    - Directories never go through debounce or classification.
    - Every exit route stops the reload scheduler, which delivers a reload
      that was already due and drops one that was not.
"""

from __future__ import annotations

import logging
import os
import queue
import stat
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Protocol, Sequence

from devwatch.classifier import COMPILED_EXTENSION, EventClassifier, FilesEventHandler, OwnershipOracle, unobserved_files
from devwatch.debounce import DEFAULT_DEBOUNCE_SECONDS, DebounceTracker
from devwatch.directory import DirectoryWatcher, FolderEventObserver
from devwatch.events import FileEvent, is_delete
from devwatch.exclusion import ExclusionFilter, get_file_name
from devwatch.reload import DEFAULT_RELOAD_DELAY, ReloadScheduler
from devwatch.source import STREAM_CLOSED, WatchdogEventSource

if TYPE_CHECKING:
    from devwatch.config import Config

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["EventSource", "DevWatch"]


class _Wake:
    def __repr__(self) -> str:
        return "WAKE"


# Put on the source queue so a blocked loop notices the exit signal at once.
_WAKE = _Wake()


class EventSource(Protocol):
    events: "queue.Queue[Any]"

    def add(self, path: str) -> None:
        ...

    def start(self) -> None:
        ...

    def close(self) -> None:
        ...

    def is_alive(self) -> bool:
        ...


class DevWatch:
    """Orchestrate change detection for one project root.

    Attributes:
        root_dir (str): Absolute project root.
        exclusion (ExclusionFilter): Path exclusion predicate.
        tracker (DebounceTracker): Per-path debounce state.
        classifier (EventClassifier): Handler dispatch.
        scheduler (ReloadScheduler): Debounced reload trigger.
        directories (Optional[DirectoryWatcher]): Directory registration, set once
            a source is attached.
        exit_event (threading.Event): Set to request an orderly shutdown.

    Example:
        >>> watch = DevWatch("/path/to/app", [handler], reload_action=reload)
        >>> watch.start()
        >>> watch.run()  # blocks until watch.exit_event is set
    """

    def __init__(
        self,
        root_dir: str,
        handlers: Sequence[FilesEventHandler],
        source: Optional[EventSource] = None,
        oracle: Optional[OwnershipOracle] = None,
        folder_events: Optional[FolderEventObserver] = None,
        reload_action: Optional[Callable[[], Any]] = None,
        exit_event: Optional[threading.Event] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        reload_delay: float = DEFAULT_RELOAD_DELAY,
        excluded_names: Iterable[str] = (),
        compiled_extension: str = COMPILED_EXTENSION,
        poll_interval: float = 0.1,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            root_dir (str): Project root directory.
            handlers (Sequence[FilesEventHandler]): Ordered handler list.
            source (Optional[EventSource]): Notification source. Defaults to a
                watchdog source created in :meth:`start`.
            oracle (Optional[OwnershipOracle]): Ownership oracle for compiled files.
            folder_events (Optional[FolderEventObserver]): Directory event observer.
            reload_action (Optional[Callable[[], Any]]): Action fired after a burst.
            exit_event (Optional[threading.Event]): External exit signal.
            debounce_seconds (float): Content debounce window.
            reload_delay (float): Reload coalescing window.
            excluded_names (Iterable[str]): Path segment names to ignore.
            compiled_extension (str): Extension subject to ownership checks.
            poll_interval (float): Max seconds between exit signal checks.
            logger (Optional[logging.Logger]): Optional logger instance.
        """
        self.root_dir = os.path.abspath(root_dir)
        self.logger = logger or logging.getLogger(__name__)
        self.handlers = list(handlers)
        self.source = source
        self.folder_events = folder_events
        self.exit_event = exit_event or threading.Event()
        self.poll_interval = poll_interval

        self.exclusion = ExclusionFilter(excluded_names, root=self.root_dir)
        self.exclusion.extend(unobserved_files(self.handlers))
        self.tracker = DebounceTracker(debounce_seconds)
        self.classifier = EventClassifier(
            self.handlers, oracle=oracle, compiled_extension=compiled_extension, logger=self.logger
        )
        self.scheduler = ReloadScheduler(reload_delay, reload_action, logger=self.logger)
        self.directories: Optional[DirectoryWatcher] = None
        if source is not None:
            self.directories = DirectoryWatcher(source, self.exclusion, folder_events, logger=self.logger)

        self._started = False
        self._running = False
        self._shutdown_lock = threading.Lock()
        self._shutdown_done = False
        self._thread: Optional[threading.Thread] = None
        self.events_processed = 0

    @classmethod
    def from_config(cls, config: "Config", handlers: Sequence[FilesEventHandler], **kwargs: Any) -> "DevWatch":
        """Build a DevWatch from a loaded :class:`~devwatch.config.Config`."""
        return cls(
            config.root_dir,
            handlers,
            debounce_seconds=config.debounce_seconds,
            reload_delay=config.reload_delay_seconds,
            excluded_names=config.excluded_names,
            **kwargs,
        )

    def start(self) -> None:
        """Attach the source, register the project tree and start threads.

        Raises:
            FileNotFoundError: If the project root does not exist.
        """
        if self._started:
            return
        if not os.path.isdir(self.root_dir):
            raise FileNotFoundError(f"Project root not found: {self.root_dir}")

        if self.source is None:
            self.source = WatchdogEventSource()
        if self.directories is None:
            self.directories = DirectoryWatcher(self.source, self.exclusion, self.folder_events, logger=self.logger)

        registered = self.directories.register_tree(self.root_dir)
        self.logger.info(f"Watching {len(registered)} directories under {self.root_dir}")
        self.source.start()
        self.scheduler.start()
        self._started = True

    def run(self) -> None:
        """Consume events until the exit signal or stream termination.

        Returns:
            None
        """
        if not self._started:
            self.start()
        if self.source is None:
            raise RuntimeError("Notification source is not available")

        self._running = True
        try:
            while True:
                if self.exit_event.is_set():
                    self.logger.debug("Exit signal received, stopping event loop")
                    return

                try:
                    item = self.source.events.get(timeout=self.poll_interval)
                except queue.Empty:
                    if not self.source.is_alive():
                        self.logger.error("Notification source stopped unexpectedly")
                        return
                    continue

                if item is _WAKE:
                    continue
                if item is STREAM_CLOSED:
                    self.logger.error("Notification source event stream closed")
                    return
                if isinstance(item, Exception):
                    self.logger.error(f"Watcher error: {item}")
                    continue

                try:
                    self.handle_event(item)
                except Exception as e:
                    self.logger.error(f"Unexpected error handling {item}: {e}", exc_info=True)
        finally:
            self._shutdown()
            self._running = False

    def handle_event(self, event: FileEvent) -> None:
        """Process one notification.

        Args:
            event (FileEvent): The event to process.
        """
        path = event.path
        kind = event.kind
        deleted = is_delete(kind)

        if self.exclusion.is_excluded(path):
            return

        is_dir = event.is_directory
        if not deleted:
            try:
                st = os.stat(path)
            except OSError:
                return
            is_dir = stat.S_ISDIR(st.st_mode)

        try:
            file_name = get_file_name(path)
        except ValueError:
            return

        if is_dir:
            if self.directories is not None:
                self.directories.handle_directory_event(file_name, path, kind)
            return

        now = time.monotonic()
        if not self.tracker.should_process(path, now):
            return

        self.events_processed += 1
        extension = os.path.splitext(file_name)[1]
        result = self.classifier.dispatch(file_name, path, extension, kind)
        if result.reload_warranted:
            self.scheduler.schedule()

        self.tracker.record(path, now)

    def run_in_background(self) -> threading.Thread:
        """Start the pipeline and run the loop on a daemon thread."""
        self.start()
        self._thread = threading.Thread(target=self.run, name="DevWatch")
        self._thread.daemon = True
        self._thread.start()
        return self._thread

    def request_exit(self) -> None:
        """Signal exit without waiting for the loop to finish.

        The reload scheduler is stopped immediately, so a reload still inside
        its coalescing window is dropped while one already due is delivered
        once. The loop is woken instead of waiting out its poll interval.
        Safe to call from a signal handler or from the loop thread.
        """
        self.exit_event.set()
        self.scheduler.stop()
        if self.source is not None:
            self.source.events.put(_WAKE)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Signal exit and wait for the loop thread, if any, to finish.

        Args:
            timeout (Optional[float]): Max seconds to wait for the loop thread.
        """
        self.request_exit()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                self.logger.warning("Event loop did not terminate within timeout.")
        elif not self._running:
            self._shutdown()

    def _shutdown(self) -> None:
        with self._shutdown_lock:
            if self._shutdown_done:
                return
            self._shutdown_done = True
        if self.source is not None:
            try:
                self.source.close()
            except Exception as e:
                self.logger.error(f"Error closing notification source: {e}")
        self.scheduler.stop()

    def get_statistics(self) -> dict:
        return {
            "events_processed": self.events_processed,
            "duplicates_skipped": self.tracker.skipped,
            "handler_invocations": self.classifier.invocations,
            "reloads": self.scheduler.fire_count,
            "tracked_paths": len(self.tracker),
        }

    def __repr__(self) -> str:
        return f"<DevWatch root={self.root_dir} handlers={len(self.handlers)}>"
