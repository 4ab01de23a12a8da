"""
Batch runners for watchlists.

One task per symbol; every task resolves to success or failure and a
failure never aborts the rest of the batch.

Stages per symbol:
- volatility: history + quote -> ATR, point stop, trailing stops, alert
- dma: ~250 days of history (padded to 200 bars if 170-199) -> DMA analysis
- price: current quote only
"""
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .alerts import AlertCondition, evaluate_alert
from .models import DMAAnalysis, PricePoint, TrailingStopPoint, VolatilityStop
from .technical.dma import MIN_BARS, analyze_dma
from .technical.volatility import calculate_atr, calculate_trailing_stops, calculate_volatility_stop
from .validation import ValidationError, parse_date

logger = logging.getLogger(__name__)

HISTORICAL_DAYS = 90
DMA_HISTORY_DAYS = 250
MIN_BARS_FOR_PADDING = 170
MAX_STOCKS_PER_BATCH = 50


@dataclass
class BatchItem:
    symbol: str
    success: bool
    result: Any = None
    error: Optional[str] = None


@dataclass
class BatchReport:
    results: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def add(self, item: BatchItem):
        if item.success:
            self.results[item.symbol] = item.result
        else:
            self.errors[item.symbol] = item.error

    @property
    def total_successful(self) -> int:
        return len(self.results)

    @property
    def total_failed(self) -> int:
        return len(self.errors)

    @property
    def total_processed(self) -> int:
        return self.total_successful + self.total_failed


@dataclass(frozen=True)
class VolatilityReport:
    symbol: str
    region: str
    current_price: float
    atr: float
    volatility_stop: VolatilityStop
    trailing: List[TrailingStopPoint]
    alert: Optional[AlertCondition] = None


def _unique(symbols: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(s.strip() for s in symbols if s and s.strip()))


def check_batch_size(symbols: Sequence[str], limit: int = MAX_STOCKS_PER_BATCH):
    if len(symbols) > limit:
        raise ValueError(f"Too many symbols: {len(symbols)} (max {limit} per batch)")


def run_task(symbol: str, task: Callable[[str], Any]) -> BatchItem:
    """Run `task(symbol)`; any exception becomes a failed BatchItem."""
    try:
        return BatchItem(symbol=symbol, success=True, result=task(symbol))
    except Exception as e:
        logger.error(f"✗ {symbol}: {e}")
        return BatchItem(symbol=symbol, success=False, error=str(e))


def run_parallel(symbols: Iterable[str], task: Callable[[str], Any], max_workers: int = 4) -> BatchReport:
    """Fan out one task per symbol on a thread pool."""
    symbols = _unique(symbols)
    report = BatchReport()
    if not symbols:
        return report

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(symbols)))) as executor:
        for item in executor.map(lambda s: run_task(s, task), symbols):
            report.add(item)

    logger.info(f"Batch complete: {report.total_successful}/{report.total_processed} succeeded")
    return report


def run_sequential(
    symbols: Iterable[str],
    task: Callable[[str], Any],
    delay_seconds: float = 0.1,
    sleep: Callable[[float], None] = time.sleep
) -> BatchReport:
    """One symbol at a time with a pause between upstream calls."""
    symbols = _unique(symbols)
    report = BatchReport()

    for i, symbol in enumerate(symbols):
        if i > 0 and delay_seconds > 0:
            sleep(delay_seconds)
        report.add(run_task(symbol, task))

    logger.info(f"Batch complete: {report.total_successful}/{report.total_processed} succeeded")
    return report


# ========================
# Per-symbol stages
# ========================

def analyze_volatility(
    orchestrator,
    symbol: str,
    region,
    days: int = HISTORICAL_DAYS,
    atr_period: int = 14,
    multiplier: float = 2.0,
    allow_buy_signal: bool = True,
    sell_above_pct: float = 10.0,
    buy_below_pct: float = 3.0,
    high_volatility_pct: float = 10.0,
    approaching_pct: float = 5.0
) -> VolatilityReport:
    history = orchestrator.fetch_historical_data(symbol, region, days)
    current_price = orchestrator.fetch_current_price(symbol, region)

    atr = calculate_atr(history, atr_period)
    volatility_stop = calculate_volatility_stop(
        current_price, atr, multiplier,
        allow_buy_signal=allow_buy_signal,
        sell_above_pct=sell_above_pct,
        buy_below_pct=buy_below_pct
    )
    trailing = calculate_trailing_stops(history, atr_period, multiplier)
    alert = evaluate_alert(current_price, volatility_stop, high_volatility_pct, approaching_pct)

    logger.info(f"✓ {symbol}: price {current_price:.2f}, ATR {atr:.2f}, "
                f"stop {volatility_stop.stop_loss:.2f} -> {volatility_stop.recommendation.value}")
    return VolatilityReport(
        symbol=symbol,
        region=getattr(region, 'value', str(region)),
        current_price=current_price,
        atr=atr,
        volatility_stop=volatility_stop,
        trailing=trailing,
        alert=alert
    )


def pad_history(
    series: Sequence[PricePoint],
    target: int = MIN_BARS,
    min_bars: int = MIN_BARS_FOR_PADDING
) -> List[PricePoint]:
    """
    Prepend flat bars at the average close so that a series of
    `min_bars`..`target - 1` bars reaches `target`.

    Padding bars are dated one calendar day apart, ending the day before the
    oldest real bar. The input is assumed sorted ascending.

    Raises:
        ValidationError: fewer than `min_bars` bars
    """
    n = len(series)
    if n >= target:
        return list(series)
    if n < min_bars:
        raise ValidationError(
            f"Insufficient historical data for DMA calculation (minimum {min_bars} days required, got {n})",
            field='length'
        )

    avg_close = sum(p.close for p in series) / n
    oldest = parse_date(series[0].date)
    missing = target - n

    padding = [
        PricePoint(
            date=(oldest - timedelta(days=missing - i)).strftime('%Y-%m-%d'),
            high=avg_close,
            low=avg_close,
            close=avg_close
        )
        for i in range(missing)
    ]
    logger.debug(f"Padded {n} bars with {missing} average-close bars ({avg_close:.2f})")
    return padding + list(series)


def analyze_dma_for_symbol(
    orchestrator,
    symbol: str,
    region,
    strategy: str = 'trend',
    days: int = DMA_HISTORY_DAYS,
    min_bars: int = MIN_BARS_FOR_PADDING
) -> DMAAnalysis:
    history = orchestrator.fetch_historical_data(symbol, region, days)
    analysis = analyze_dma(pad_history(history, MIN_BARS, min_bars), strategy)
    if analysis is None:
        raise ValidationError(f"Insufficient data for DMA analysis of {symbol}", field='length')

    logger.info(f"✓ {symbol}: {analysis.signal.value} ({analysis.recommendation})")
    return analysis


def fetch_prices(orchestrator, symbols: Iterable[str], region, max_workers: int = 4) -> BatchReport:
    """Current quotes for many symbols."""
    return run_parallel(symbols, lambda s: orchestrator.fetch_current_price(s, region), max_workers)
