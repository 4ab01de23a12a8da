"""
Volatility Stops (ATR)

- True Range / Average True Range with Wilder smoothing
- Trailing stop state machine (UP/DOWN) replayed bar by bar
- Point-in-time volatility stop for quoting a single price

All functions are pure: same input, same output, no shared state.
"""

import logging
from typing import List, Sequence

from ..models import ATRPoint, PricePoint, StopSignal, TrailingStopPoint, Trend, VolatilityStop
from ..validation import ValidationError, is_finite_number, validate

logger = logging.getLogger(__name__)

DEFAULT_ATR_PERIOD = 14
DEFAULT_MULTIPLIER = 2.0

# Point-stop policy thresholds (% distance between price and stop)
SELL_ABOVE_PCT = 10.0
BUY_BELOW_PCT = 3.0


def true_range(high: float, low: float, previous_close: float) -> float:
    """max(high-low, |high-prev_close|, |low-prev_close|)"""
    return max(
        high - low,
        abs(high - previous_close),
        abs(low - previous_close)
    )


def _check_period(period) -> None:
    if isinstance(period, bool) or not isinstance(period, int) or period < 1:
        raise ValidationError(f"ATR period must be a positive integer, got {period!r}", field='period')


def _check_multiplier(multiplier) -> None:
    if not is_finite_number(multiplier) or multiplier <= 0:
        raise ValidationError(f"Multiplier must be a finite number > 0, got {multiplier!r}", field='multiplier')


def calculate_atr_series(series: Sequence[PricePoint], period: int = DEFAULT_ATR_PERIOD) -> List[ATRPoint]:
    """
    Average True Range for every bar once the warm-up period has elapsed.

    - TR is defined from bar 1 onward (needs the previous close)
    - Initial ATR = simple average of the first `period` TRs, dated at bar `period`
    - Then Wilder smoothing: atr = (atr_prev * (period - 1) + TR) / period

    Args:
        series: Validated, chronologically ordered bars
        period: ATR period (default: 14 days)

    Returns:
        len(series) - period ATRPoints, the first one aligned to series[period]

    Raises:
        ValidationError: bad period, series shorter than period + 1, or a bad bar
    """
    _check_period(period)

    if series is None or len(series) < period + 1:
        actual = 0 if series is None else len(series)
        raise ValidationError(
            f"Need at least {period + 1} data points to calculate ATR, got {actual}",
            field='length'
        )

    validate(series)

    true_ranges = [
        true_range(series[i].high, series[i].low, series[i - 1].close)
        for i in range(1, len(series))
    ]

    atr = sum(true_ranges[:period]) / period
    results = [ATRPoint(date=series[period].date, atr=atr)]

    for i in range(period, len(true_ranges)):
        atr = (atr * (period - 1) + true_ranges[i]) / period
        # true_ranges[i] belongs to bar i + 1
        results.append(ATRPoint(date=series[i + 1].date, atr=atr))

    return results


def calculate_atr(series: Sequence[PricePoint], period: int = DEFAULT_ATR_PERIOD) -> float:
    """Latest ATR value; thin wrapper over calculate_atr_series()."""
    return calculate_atr_series(series, period)[-1].atr


def calculate_trailing_stops(
    series: Sequence[PricePoint],
    atr_period: int = DEFAULT_ATR_PERIOD,
    multiplier: float = DEFAULT_MULTIPLIER
) -> List[TrailingStopPoint]:
    """
    Replay the ATR trailing stop over a price series.

    State machine (one step per ATR-aligned bar):
        UP:   stop = max(prev_stop, close - m*atr)
              close < stop  -> SELL, switch to DOWN, stop = close + m*atr
        DOWN: stop = min(prev_stop, close + m*atr)
              close > stop  -> BUY, switch to UP, stop = close - m*atr

    The first bar starts UP with stop = close - m*atr and signal HOLD. A flip
    recomputes the stop on the same bar, there is no one-bar lag.

    Args:
        series: Chronologically ordered bars
        atr_period: ATR period (default: 14)
        multiplier: ATR multiple for the stop distance (default: 2.0)

    Returns:
        One TrailingStopPoint per ATR point, dated from series[atr_period]

    Raises:
        ValidationError: bad multiplier or anything calculate_atr_series() rejects
    """
    _check_multiplier(multiplier)
    atr_points = calculate_atr_series(series, atr_period)

    results: List[TrailingStopPoint] = []
    trend = Trend.UP
    stop_loss = None

    for offset, atr_point in enumerate(atr_points):
        bar = series[atr_period + offset]
        close = bar.close
        if close <= 0:
            raise ValidationError(
                f"Invalid close at index {atr_period + offset}: {close!r} (must be > 0)",
                index=atr_period + offset, field='close'
            )
        atr = atr_point.atr
        stop_up = close - multiplier * atr
        stop_down = close + multiplier * atr
        signal = StopSignal.HOLD

        if stop_loss is None:
            stop_loss = stop_up
        elif trend == Trend.UP:
            stop_loss = max(stop_loss, stop_up)
            if close < stop_loss:
                signal = StopSignal.SELL
                trend = Trend.DOWN
                stop_loss = stop_down
        else:
            stop_loss = min(stop_loss, stop_down)
            if close > stop_loss:
                signal = StopSignal.BUY
                trend = Trend.UP
                stop_loss = stop_up

        results.append(TrailingStopPoint(
            date=bar.date,
            close=close,
            atr=atr,
            stop_loss=stop_loss,
            stop_loss_percentage=abs(close - stop_loss) / close * 100,
            trend=trend,
            signal=signal
        ))

    flips = sum(1 for p in results if p.signal != StopSignal.HOLD)
    logger.debug(f"Trailing stop replay: {len(results)} bars, {flips} signals, final trend {trend.value}")
    return results


def calculate_volatility_stop(
    current_price: float,
    atr: float,
    multiplier: float = DEFAULT_MULTIPLIER,
    force_sell: bool = False,
    allow_buy_signal: bool = True,
    sell_above_pct: float = SELL_ABOVE_PCT,
    buy_below_pct: float = BUY_BELOW_PCT
) -> VolatilityStop:
    """
    Point-in-time volatility stop from one price and one ATR value.

    Recommendation (first match wins):
        force_sell                      -> SELL
        stop distance > sell_above_pct  -> SELL (too volatile)
        stop distance < buy_below_pct   -> BUY, or HOLD when allow_buy_signal is False
        otherwise                       -> HOLD

    Args:
        current_price: Latest price (> 0)
        atr: Average True Range (>= 0)
        multiplier: ATR multiple (2.0 conservative, 3.0 aggressive)
        force_sell: Caller-side override, always SELL
        allow_buy_signal: Whether the low-volatility BUY branch is enabled

    Raises:
        ValidationError: one distinct error per invalid argument
    """
    if not is_finite_number(current_price) or current_price <= 0:
        raise ValidationError(f"Current price must be a finite number > 0, got {current_price!r}",
                              field='current_price')
    if not is_finite_number(atr) or atr < 0:
        raise ValidationError(f"ATR must be a finite number >= 0, got {atr!r}", field='atr')
    _check_multiplier(multiplier)

    stop_loss = current_price - atr * multiplier
    stop_loss_percentage = (current_price - stop_loss) / current_price * 100

    if force_sell:
        recommendation = StopSignal.SELL
    elif stop_loss_percentage > sell_above_pct:
        recommendation = StopSignal.SELL
    elif stop_loss_percentage < buy_below_pct and allow_buy_signal:
        recommendation = StopSignal.BUY
    else:
        recommendation = StopSignal.HOLD

    return VolatilityStop(
        atr=atr,
        stop_loss=stop_loss,
        stop_loss_percentage=stop_loss_percentage,
        recommendation=recommendation
    )
