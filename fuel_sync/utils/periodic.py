"""
Background worker that runs an action on a fixed interval until stopped.
"""

import threading
from typing import Callable, Optional

from .logger import get_logger


class PeriodicTask:
    """
    Calls `action` every `interval_seconds` on a daemon thread.

    A failing call is logged and the schedule continues. `stop()` signals
    the worker and waits for it to exit, so no call starts after it returns.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        action: Callable[[], None],
        run_immediately: bool = False,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.name = name
        self.interval_seconds = interval_seconds
        self.action = action
        self.run_immediately = run_immediately
        self.logger = get_logger()

        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._state_lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
            self._thread.start()

        self.logger.info(
            "Periodic task started",
            extra={"task": self.name, "interval_seconds": self.interval_seconds},
        )

    def stop(self, join_timeout_seconds: Optional[float] = None) -> None:
        with self._state_lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()

        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout=join_timeout_seconds)
        self.logger.info("Periodic task stopped", extra={"task": self.name})

    def _loop(self) -> None:
        if self.run_immediately:
            self._tick()
        while not self._stop_event.wait(self.interval_seconds):
            self._tick()

    def _tick(self) -> None:
        try:
            self.action()
        except Exception as e:
            self.logger.error(
                "Periodic task failed",
                extra={"task": self.name, "error_type": type(e).__name__, "error": str(e)},
            )
