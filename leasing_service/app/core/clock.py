from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

from shared.core.config import settings


def make_today(tz_name: str = settings.LEASE_TIMEZONE) -> Callable[[], date]:
    """Calendar day in the lease time zone; lease dates are compared against it."""
    zone = ZoneInfo(tz_name)

    def today() -> date:
        return datetime.now(zone).date()

    return today
