"""
Data contracts shared by the calculators, the orchestrator and the
alerting/display collaborators.

Everything here is a frozen dataclass: provider adapters produce PricePoint
series, calculators return fresh result objects, nobody mutates them.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, Tuple, TypeVar, Union

T = TypeVar('T')


class Region(str, Enum):
    US = 'US'
    INDIA = 'INDIA'

    @classmethod
    def parse(cls, value: Union[str, 'Region']) -> 'Region':
        """Accept 'US', 'us', 'INDIA', 'IN' or a Region."""
        if isinstance(value, Region):
            return value
        text = str(value).strip().upper()
        if text == 'IN':
            text = 'INDIA'
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unknown region: {value!r} (expected one of {[r.value for r in cls]})")


class Trend(str, Enum):
    UP = 'UP'
    DOWN = 'DOWN'


class StopSignal(str, Enum):
    HOLD = 'HOLD'
    BUY = 'BUY'
    SELL = 'SELL'


class TrendState(str, Enum):
    BULLISH = 'BULLISH'
    BEARISH = 'BEARISH'
    NEUTRAL = 'NEUTRAL'


class TrendSignal(str, Enum):
    """Signals of the full 50/150/200 trend-following strategy."""
    BUY_SETUP_A = 'BUY_SETUP_A'
    BUY_SETUP_B = 'BUY_SETUP_B'
    SELL_PARTIAL = 'SELL_PARTIAL'
    SELL_MAJORITY = 'SELL_MAJORITY'
    SELL_FULL = 'SELL_FULL'
    SHORT = 'SHORT'
    HOLD = 'HOLD'
    NO_TRADE = 'NO_TRADE'


class SwingSignal(str, Enum):
    """Signals of the simplified swing strategy."""
    BUY_AT_150DMA = 'BUY_AT_150DMA'
    REDUCE_30_PERCENT = 'REDUCE_30_PERCENT'
    HOLD = 'HOLD'
    WAIT = 'WAIT'


class SignalStrength(str, Enum):
    STRONG = 'STRONG'
    MODERATE = 'MODERATE'
    WEAK = 'WEAK'
    NONE = 'NONE'


class DMAAlignment(str, Enum):
    BULLISH_ALIGNED = 'BULLISH_ALIGNED'
    BEARISH_ALIGNED = 'BEARISH_ALIGNED'
    MIXED = 'MIXED'


@dataclass(frozen=True)
class PricePoint:
    """One trading session."""
    date: str
    high: float
    low: float
    close: float
    open: Optional[float] = None


@dataclass(frozen=True)
class ATRPoint:
    date: str
    atr: float


@dataclass(frozen=True)
class TrailingStopPoint:
    date: str
    close: float
    atr: float
    stop_loss: float
    stop_loss_percentage: float
    trend: Trend
    signal: StopSignal


@dataclass(frozen=True)
class VolatilityStop:
    atr: float
    stop_loss: float
    stop_loss_percentage: float
    recommendation: StopSignal


@dataclass(frozen=True)
class DMAAnalysis:
    strategy: str
    current_price: float
    dma50: float
    dma150: float
    dma200: float
    trend_state: TrendState
    signal: Union[TrendSignal, SwingSignal]
    dma_alignment: DMAAlignment
    distance_from_dma50_pct: float
    distance_from_dma150_pct: float
    distance_from_dma200_pct: float
    recommendation: str
    details: Tuple[str, ...] = field(default_factory=tuple)
    # only the trend-following strategy grades its signals
    signal_strength: Optional[SignalStrength] = None


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
