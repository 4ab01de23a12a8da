"""
Regular trading sessions per region.

US: 09:30-16:00 America/New_York, NYSE holidays
INDIA: 09:15-15:30 Asia/Kolkata
Weekends are closed everywhere. Naive datetimes are taken as UTC.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import FrozenSet, Optional, Union
from zoneinfo import ZoneInfo

from .models import Region

logger = logging.getLogger(__name__)

US_MARKET_HOLIDAYS = frozenset(date.fromisoformat(d) for d in (
    '2025-01-01',  # New Year's Day
    '2025-01-20',  # Martin Luther King Jr. Day
    '2025-02-17',  # Presidents' Day
    '2025-04-18',  # Good Friday
    '2025-05-26',  # Memorial Day
    '2025-06-19',  # Juneteenth
    '2025-07-04',  # Independence Day
    '2025-09-01',  # Labor Day
    '2025-11-27',  # Thanksgiving
    '2025-12-25',  # Christmas
    '2026-01-01',
    '2026-01-19',
    '2026-02-16',
    '2026-04-03',
    '2026-05-25',
    '2026-06-19',
    '2026-07-03',
    '2026-09-07',
    '2026-11-26',
    '2026-12-25',
))


@dataclass(frozen=True)
class MarketSession:
    timezone: str
    open_time: time
    close_time: time
    holidays: FrozenSet[date] = frozenset()

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def is_trading_day(self, day: date) -> bool:
        return day.weekday() < 5 and day not in self.holidays


SESSIONS = {
    Region.US: MarketSession('America/New_York', time(9, 30), time(16, 0), US_MARKET_HOLIDAYS),
    Region.INDIA: MarketSession('Asia/Kolkata', time(9, 15), time(15, 30)),
}


def _local_now(session: MarketSession, now: Optional[datetime]) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(session.tz)


def is_market_open(region: Union[str, Region], now: Optional[datetime] = None) -> bool:
    """True inside the regular session: open <= local time < close on a trading day."""
    session = SESSIONS[Region.parse(region)]
    local = _local_now(session, now)

    if not session.is_trading_day(local.date()):
        logger.debug(f"{Region.parse(region).value} market closed: weekend/holiday ({local.date()})")
        return False

    return session.open_time <= local.time() < session.close_time


def next_market_open(region: Union[str, Region], now: Optional[datetime] = None) -> datetime:
    """
    Next session open strictly after `now`, as an aware datetime in the
    market's timezone. During a session this is the next day's open.
    """
    session = SESSIONS[Region.parse(region)]
    local = _local_now(session, now)

    day = local.date()
    if local.time() >= session.open_time:
        day += timedelta(days=1)
    while not session.is_trading_day(day):
        day += timedelta(days=1)

    return datetime.combine(day, session.open_time, tzinfo=session.tz)
