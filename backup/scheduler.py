"""Recurring timer driving automatic backups."""
from __future__ import annotations

import threading
from typing import Callable, Optional

from .logs import BackupLogger
from .types import LiveDataset

PullCallback = Callable[[], LiveDataset]
CycleRunner = Callable[[LiveDataset], object]

MIN_INTERVAL_S = 0.01


class BackupScheduler:
    """Run a backup cycle shortly after start and then at a fixed interval.

    Each :meth:`start` replaces the previous worker thread, so at most one
    timer is live. The data is pulled fresh on every tick.
    """

    def __init__(
        self,
        runner: CycleRunner,
        *,
        logger: BackupLogger,
        interval_s: float = 6 * 60 * 60,
        initial_delay_s: float = 5.0,
        join_timeout_s: float = 5.0,
    ) -> None:
        self._runner = runner
        self._logger = logger
        self._interval = max(float(interval_s), MIN_INTERVAL_S)
        self._initial_delay = max(float(initial_delay_s), 0.0)
        self._join_timeout = join_timeout_s
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._ticks = 0

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def interval_s(self) -> float:
        return self._interval

    @property
    def initial_delay_s(self) -> float:
        return self._initial_delay

    @property
    def ticks(self) -> int:
        return self._ticks

    # ------------------------------------------------------------------
    def start(self, pull: PullCallback) -> None:
        with self._lock:
            self._stop_locked()
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(pull, stop_event),
                name="backup-scheduler",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()
        self._logger.event(
            event="scheduler_started",
            phase="schedule",
            ok=True,
            interval_s=self._interval,
            initial_delay_s=self._initial_delay,
        )

    def stop(self) -> None:
        with self._lock:
            was_running = self._thread is not None
            self._stop_locked()
        if was_running:
            self._logger.event(event="scheduler_stopped", phase="schedule", ok=True)

    def _stop_locked(self) -> None:
        stop_event, thread = self._stop_event, self._thread
        self._stop_event = None
        self._thread = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout)

    # ------------------------------------------------------------------
    def _run_loop(self, pull: PullCallback, stop_event: threading.Event) -> None:
        delay = self._initial_delay
        while not stop_event.wait(delay):
            self._tick(pull)
            delay = self._interval

    def _tick(self, pull: PullCallback) -> None:
        self._ticks += 1
        try:
            self._runner(pull())
        except Exception as exc:  # noqa: BLE001 - a failed tick must not end the timer
            self._logger.error("scheduled_backup_failed", tick=self._ticks, error=repr(exc))


__all__ = ["BackupScheduler", "CycleRunner", "MIN_INTERVAL_S", "PullCallback"]
