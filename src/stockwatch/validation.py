"""
Structural checks on raw OHLC series.

Every calculator runs `validate()` before touching a series. The validator
never reorders or repairs data: callers that cannot guarantee ordering must
call `sort_by_date()` first.
"""
import math
import numbers
import logging
from typing import List, Optional, Sequence

import pandas as pd

from .models import PricePoint

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Input data or parameters violate a precondition of a calculation."""

    def __init__(self, message: str, index: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message)
        self.index = index
        self.field = field


def parse_date(value) -> pd.Timestamp:
    """
    Parse a calendar date string into a naive timestamp.

    Timezone-aware inputs (e.g. '2024-01-02T00:00:00Z') are converted to UTC
    first so that mixed provider formats still compare.

    Raises:
        ValueError: empty or unparseable value
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"empty date: {value!r}")
    ts = pd.Timestamp(value.strip())
    if pd.isna(ts):
        raise ValueError(f"unparseable date: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert('UTC').tz_localize(None)
    return ts


def is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def validate_point(point: PricePoint, index: int) -> None:
    """Check a single bar. Raises ValidationError naming index and field."""
    for name in ('high', 'low', 'close'):
        value = getattr(point, name, None)
        if not is_finite_number(value):
            raise ValidationError(
                f"Invalid {name} at index {index}: {value!r}",
                index=index, field=name
            )

    if point.high < point.low:
        raise ValidationError(
            f"High must be >= low at index {index} (high={point.high}, low={point.low})",
            index=index, field='high'
        )

    try:
        parse_date(getattr(point, 'date', None))
    except (ValueError, TypeError):
        raise ValidationError(
            f"Invalid date at index {index}: {getattr(point, 'date', None)!r}",
            index=index, field='date'
        )


def validate_chronological_order(series: Sequence[PricePoint]) -> None:
    """Raise ValidationError at the first bar dated before its predecessor."""
    previous = None
    for i, point in enumerate(series):
        try:
            current = parse_date(point.date)
        except (ValueError, TypeError):
            raise ValidationError(f"Invalid date at index {i}: {point.date!r}", index=i, field='date')

        if previous is not None and current < previous:
            raise ValidationError(
                f"Data not in chronological order at index {i}: "
                f"{point.date} comes after {series[i - 1].date}",
                index=i, field='date'
            )
        previous = current


def validate(series: Sequence[PricePoint]) -> Sequence[PricePoint]:
    """
    Validate a price series and return it unchanged.

    Checks, in order, every bar (finite high/low/close, high >= low, parseable
    date) and then non-decreasing date order.

    Raises:
        ValidationError: first violation found, with `index` and `field` set
    """
    if series is None:
        raise ValidationError("Price series is required")

    for i, point in enumerate(series):
        validate_point(point, i)

    validate_chronological_order(series)
    return series


def sort_by_date(series: Sequence[PricePoint]) -> List[PricePoint]:
    """Return a new list sorted ascending by date. The input is not mutated."""
    keyed = []
    for i, point in enumerate(series):
        try:
            keyed.append((parse_date(point.date), i, point))
        except (ValueError, TypeError):
            raise ValidationError(f"Invalid date at index {i}: {point.date!r}", index=i, field='date')

    # index as tie-breaker keeps same-day bars in their original order
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [point for _, _, point in keyed]
