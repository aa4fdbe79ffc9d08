"""Debounced reload trigger.

Any number of qualifying events inside the delay window collapse into a single
reload, fired once the window elapses with no further events (trailing
debounce). A single always-running consumer thread waits on the deadline and
runs the reload action; the event loop only arms or re-arms it.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["DEFAULT_RELOAD_DELAY", "ReloadScheduler"]

DEFAULT_RELOAD_DELAY = 0.05


class ReloadScheduler:
    """Coalesce reload requests into one call per quiet window.

    States are *idle* (no deadline) and *armed* (deadline set). ``schedule``
    arms or pushes the deadline forward; the consumer thread fires the action
    when the deadline passes. The condition lock is never held while the
    action runs.

    Attributes:
        delay (float): Quiet period in seconds before the reload fires.
        action (Optional[Callable[[], Any]]): The reload action.
        fire_count (int): Number of times the action has been invoked.
    """

    __slots__ = ("delay", "action", "logger", "fire_count", "_condition", "_deadline", "_stopped", "_thread")

    def __init__(
        self,
        delay: float = DEFAULT_RELOAD_DELAY,
        action: Optional[Callable[[], Any]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Initialize the scheduler in the idle state.

        Args:
            delay (float): Quiet period in seconds.
            action (Optional[Callable[[], Any]]): Zero-argument reload action.
            logger (Optional[logging.Logger]): Optional logger instance.
        """
        if delay < 0:
            raise ValueError(f"Reload delay must be non-negative, got {delay}")
        self.delay = delay
        self.action = action
        self.logger = logger or logging.getLogger(__name__)
        self.fire_count = 0
        self._condition = threading.Condition()
        self._deadline: Optional[float] = None
        self._stopped = False
        self._thread: Optional[threading.Thread] = None

    @property
    def armed(self) -> bool:
        with self._condition:
            return self._deadline is not None

    def start(self) -> None:
        """Start the consumer thread.

        Returns:
            None

        Raises:
            RuntimeError: If the scheduler was already stopped.
        """
        with self._condition:
            if self._stopped:
                raise RuntimeError("ReloadScheduler has been stopped")
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, name="ReloadScheduler")
            self._thread.daemon = True
            self._thread.start()

    def schedule(self) -> None:
        """Arm the timer, or reset the deadline if already armed.

        Returns:
            None
        """
        with self._condition:
            if self._stopped:
                return
            self._deadline = time.monotonic() + self.delay
            self._condition.notify()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Shut the scheduler down.

        An armed timer whose deadline has not passed is dropped. A deadline that
        has already passed but was not yet consumed is drained: the action runs
        exactly once before this method returns. Any reload already in flight
        on the consumer thread is waited for.

        Args:
            timeout (Optional[float]): Max seconds to wait for the consumer.

        Returns:
            None
        """
        due = False
        with self._condition:
            if self._deadline is not None:
                if time.monotonic() >= self._deadline:
                    due = True
                else:
                    self.logger.debug("Dropping pending reload on shutdown")
            self._deadline = None
            self._stopped = True
            self._condition.notify_all()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                self.logger.warning("Reload consumer did not terminate within timeout.")

        if due:
            self.logger.debug("Draining due reload on shutdown")
            self._fire()

    def _run(self) -> None:
        with self._condition:
            while not self._stopped:
                if self._deadline is None:
                    self._condition.wait()
                    continue

                wait_time = self._deadline - time.monotonic()
                if wait_time > 0:
                    self._condition.wait(wait_time)
                    continue

                self._deadline = None
                self._condition.release()
                try:
                    self._fire()
                finally:
                    self._condition.acquire()

    def _fire(self) -> None:
        self.fire_count += 1
        if self.action is None:
            return
        try:
            self.action()
        except Exception as e:
            self.logger.error(f"Reload action failed: {e}", exc_info=True)

    def __repr__(self) -> str:
        return f"<ReloadScheduler delay={self.delay} armed={self._deadline is not None}>"
