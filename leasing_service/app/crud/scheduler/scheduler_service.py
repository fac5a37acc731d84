import logging
import threading
from typing import Optional

from ..leases.expiry_sweeper import LeaseExpirySweeper

logger = logging.getLogger(__name__)


class LeaseExpiryScheduler:
    """Runs the expiry sweep on a fixed interval in a daemon thread.

    A failed sweep is logged and the loop carries on to the next tick.
    """

    def __init__(self, sweeper: LeaseExpirySweeper, interval_seconds: float, run_on_start: bool = True):
        self.sweeper = sweeper
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self):
        try:
            return self.sweeper.sweep()
        except Exception:
            logger.exception("Scheduled lease expiry sweep failed")
            return None

    def _loop(self):
        if self.run_on_start:
            self.run_once()
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="lease-expiry-scheduler", daemon=True)
        self._thread.start()
        logger.info("Lease expiry scheduler started (every %ss)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = 5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Lease expiry scheduler stopped")
