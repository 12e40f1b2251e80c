"""Background tickers for the notification and email sweeps.

The application owns its tickers: they are created and started by the
FastAPI lifespan and stopped on shutdown. A tick that fires while the
previous run is still busy is skipped rather than queued.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Optional

from sagadb.database import WriteSessionLocal

from .service import send_pending_notification_emails
from .sweep import run_notification_checks

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_minutes(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED")
NOTIFICATION_SWEEP_INTERVAL_MINUTES = _env_minutes("NOTIFICATION_SWEEP_INTERVAL_MINUTES", 60)
EMAIL_SWEEP_INTERVAL_MINUTES = _env_minutes("EMAIL_SWEEP_INTERVAL_MINUTES", 5)


class SweepTicker:
    def __init__(self, name: str, interval_seconds: float, job: Callable[[], object]) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.job = job
        self.runs = 0
        self.skipped_ticks = 0
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> bool:
        """Run the job once. Returns False when the previous run is still busy."""
        if not self._run_lock.acquire(blocking=False):
            self.skipped_ticks += 1
            logger.warning(
                "Sweep still running; tick skipped",
                extra={"ticker": self.name, "skipped_ticks": self.skipped_ticks},
            )
            return False
        try:
            self.job()
            self.runs += 1
        except Exception:
            logger.exception("Sweep job failed", extra={"ticker": self.name})
        finally:
            self._run_lock.release()
        return True

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=f"sweep-{self.name}", daemon=True)
        self._thread.start()
        logger.info(
            "Sweep ticker started",
            extra={"ticker": self.name, "interval_seconds": self.interval_seconds},
        )

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("Sweep ticker stopped", extra={"ticker": self.name})


# ---------------------------------------------------------------------------
# JOBS
# ---------------------------------------------------------------------------


def run_notification_sweep() -> dict:
    db = WriteSessionLocal()
    try:
        return run_notification_checks(db)
    finally:
        db.close()


def run_email_sweep() -> dict:
    db = WriteSessionLocal()
    try:
        summary = send_pending_notification_emails(db)
        logger.info("Email sweep completed", extra={"summary": summary})
        return summary
    finally:
        db.close()


def build_tickers() -> list[SweepTicker]:
    if not SCHEDULER_ENABLED:
        logger.info("Scheduler disabled; no sweep tickers created")
        return []
    return [
        SweepTicker("notifications", NOTIFICATION_SWEEP_INTERVAL_MINUTES * 60, run_notification_sweep),
        SweepTicker("email", EMAIL_SWEEP_INTERVAL_MINUTES * 60, run_email_sweep),
    ]
