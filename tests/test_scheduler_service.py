import threading
import time

from leasing_service.app.crud.scheduler.scheduler_service import LeaseExpiryScheduler
from leasing_service.app.schemas.leases_schemas import SweepResult


class CountingSweeper:
    def __init__(self, fail_first=False):
        self.calls = 0
        self.fail_first = fail_first
        self.ticked = threading.Event()

    def sweep(self):
        self.calls += 1
        if self.calls >= 3:
            self.ticked.set()
        if self.fail_first and self.calls == 1:
            raise RuntimeError("database unavailable")
        return SweepResult(updated_count=0)


def test_scheduler_runs_repeatedly_and_stops():
    sweeper = CountingSweeper()
    scheduler = LeaseExpiryScheduler(sweeper, interval_seconds=0.01)

    scheduler.start()
    assert sweeper.ticked.wait(2)
    scheduler.stop()

    assert not scheduler.running
    calls = sweeper.calls
    time.sleep(0.05)
    assert sweeper.calls == calls


def test_scheduler_keeps_going_after_a_failed_sweep():
    sweeper = CountingSweeper(fail_first=True)
    scheduler = LeaseExpiryScheduler(sweeper, interval_seconds=0.01)

    scheduler.start()
    try:
        assert sweeper.ticked.wait(2)
    finally:
        scheduler.stop()


def test_run_once_returns_result_or_none():
    assert LeaseExpiryScheduler(CountingSweeper(), 60).run_once().updated_count == 0
    assert LeaseExpiryScheduler(CountingSweeper(fail_first=True), 60).run_once() is None
