"""
Unit tests for price series validation and ordering.
"""
import math

import pytest

from stockwatch.models import PricePoint
from stockwatch.validation import (
    ValidationError, parse_date, sort_by_date, validate, validate_chronological_order
)


def _insert_bad_bar(bars, bad):
    return bars[:10] + [bad] + bars[10:]


class TestValidate:
    """Structural checks on each bar."""

    def test_valid_series_returned_unchanged(self, sample_bars):
        assert validate(sample_bars) is sample_bars

    def test_invalid_high(self, sample_bars):
        bars = _insert_bad_bar(sample_bars, PricePoint("2024-01-12", math.nan, 100, 105))
        with pytest.raises(ValidationError, match="Invalid high at index 10") as exc:
            validate(bars)
        assert exc.value.index == 10
        assert exc.value.field == 'high'

    def test_invalid_low(self, sample_bars):
        bars = _insert_bad_bar(sample_bars, PricePoint("2024-01-12", 110, math.inf, 105))
        with pytest.raises(ValidationError, match="Invalid low at index 10"):
            validate(bars)

    def test_invalid_close(self, sample_bars):
        bars = _insert_bad_bar(sample_bars, PricePoint("2024-01-12", 110, 100, -math.inf))
        with pytest.raises(ValidationError, match="Invalid close at index 10"):
            validate(bars)

    def test_non_numeric_value(self, sample_bars):
        bars = _insert_bad_bar(sample_bars, PricePoint("2024-01-12", "110", 100, 105))
        with pytest.raises(ValidationError, match="Invalid high"):
            validate(bars)

    def test_high_below_low(self, sample_bars):
        bars = _insert_bad_bar(sample_bars, PricePoint("2024-01-12", 100, 110, 105))
        with pytest.raises(ValidationError, match="High must be >= low at index 10"):
            validate(bars)

    def test_empty_date(self, sample_bars):
        bars = _insert_bad_bar(sample_bars, PricePoint("", 110, 100, 105))
        with pytest.raises(ValidationError, match="Invalid date at index 10") as exc:
            validate(bars)
        assert exc.value.field == 'date'

    def test_none_series(self):
        with pytest.raises(ValidationError):
            validate(None)

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)


class TestOrdering:
    """Chronological order and sorting."""

    @pytest.fixture
    def unordered(self):
        return [
            PricePoint("2024-01-03", 105, 99, 103),
            PricePoint("2024-01-01", 100, 95, 98),
            PricePoint("2024-01-02", 102, 97, 100),
        ]

    def test_out_of_order_rejected(self, unordered):
        with pytest.raises(ValidationError, match="Data not in chronological order at index 1"):
            validate_chronological_order(unordered)

    def test_validate_rejects_unsorted(self, unordered):
        with pytest.raises(ValidationError, match="chronological order"):
            validate(unordered)

    def test_sort_by_date(self, unordered):
        ordered = sort_by_date(unordered)
        assert [p.date for p in ordered] == ["2024-01-01", "2024-01-02", "2024-01-03"]

    def test_sort_does_not_mutate_input(self, unordered):
        sort_by_date(unordered)
        assert unordered[0].date == "2024-01-03"

    def test_equal_dates_allowed(self):
        bars = [PricePoint("2024-01-01", 2, 1, 1.5), PricePoint("2024-01-01", 3, 2, 2.5)]
        validate(bars)
        assert sort_by_date(bars) == bars

    def test_mixed_date_formats_compare(self):
        bars = [
            PricePoint("2024-01-01", 2, 1, 1.5),
            PricePoint("2024-01-02T00:00:00Z", 3, 2, 2.5),
        ]
        validate(bars)


class TestParseDate:

    def test_timezone_aware_is_normalized(self):
        assert parse_date("2024-01-02T05:30:00+05:30") == parse_date("2024-01-02")

    @pytest.mark.parametrize("value", ["", "   ", None, "not-a-date"])
    def test_bad_values(self, value):
        with pytest.raises((ValueError, TypeError)):
            parse_date(value)
