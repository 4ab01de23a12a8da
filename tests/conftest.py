"""
Shared fixtures: price series builders and a controllable clock.
"""
from datetime import date, timedelta

import pytest

from stockwatch.models import PricePoint


def _build_series(closes, start='2023-01-01', spread_pct=1.0):
    """Daily bars on consecutive calendar days, high/low = close +/- spread_pct%."""
    first = date.fromisoformat(start)
    return [
        PricePoint(
            date=(first + timedelta(days=i)).isoformat(),
            high=close * (1 + spread_pct / 100),
            low=close * (1 - spread_pct / 100),
            close=close
        )
        for i, close in enumerate(closes)
    ]


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def make_series():
    return _build_series


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_bars():
    """15 trading days, steadily rising (2024-01-01 .. 2024-01-19)."""
    rows = [
        ("2024-01-01", 100, 95, 98),
        ("2024-01-02", 102, 97, 100),
        ("2024-01-03", 105, 99, 103),
        ("2024-01-04", 108, 102, 105),
        ("2024-01-05", 110, 104, 107),
        ("2024-01-08", 112, 106, 109),
        ("2024-01-09", 115, 108, 112),
        ("2024-01-10", 118, 111, 115),
        ("2024-01-11", 120, 113, 117),
        ("2024-01-12", 122, 115, 119),
        ("2024-01-15", 125, 118, 122),
        ("2024-01-16", 127, 120, 124),
        ("2024-01-17", 130, 123, 127),
        ("2024-01-18", 132, 125, 129),
        ("2024-01-19", 135, 128, 132),
    ]
    return [PricePoint(date=d, high=h, low=l, close=c) for d, h, l, c in rows]


@pytest.fixture
def uptrend_closes():
    """250 closes rising 0.1 per day from 100."""
    return [100 + 0.1 * i for i in range(250)]
