# app/automation/scheduler.py
from __future__ import annotations

import logging
import threading
from typing import Callable

from app.automation.engine import AutomationEngine

logger = logging.getLogger("umapesa.scheduler")


class PeriodicTask:
    """
    Runs `fn` every `interval_s` seconds on a daemon thread until stopped.
    A failing run is logged and the next one still happens.
    """

    def __init__(self, name: str, interval_s: float, fn: Callable[[], object]):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.name = name
        self.interval_s = interval_s
        self.fn = fn
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"task-{self.name}", daemon=True)
        self._thread.start()
        logger.info("Scheduled task %s started; interval=%ss", self.name, self.interval_s)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run_once(self) -> None:
        try:
            self.fn()
        except Exception:
            logger.exception("Scheduled task %s failed", self.name)

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            self.run_once()


def _health_watch(engine: AutomationEngine) -> Callable[[], None]:
    def check() -> None:
        health = engine.health_check()
        if health["overall"] != "healthy":
            logger.warning("System health check failed health=%s", health)

    return check


def build_scheduler(engine: AutomationEngine, settings) -> list[PeriodicTask]:
    tasks = [PeriodicTask("retry-sweep", settings.RETRY_SWEEP_INTERVAL_S, engine.process_retry_queue)]

    # Clearing re-opens the door to duplicate payouts; only on when explicitly configured.
    if settings.PROCESSED_CLEAR_INTERVAL_S > 0:
        tasks.append(
            PeriodicTask(
                "processed-clear",
                settings.PROCESSED_CLEAR_INTERVAL_S,
                engine.clear_processed_transactions,
            )
        )

    if settings.HEALTH_CHECK_INTERVAL_S > 0:
        tasks.append(PeriodicTask("health-check", settings.HEALTH_CHECK_INTERVAL_S, _health_watch(engine)))

    return tasks
