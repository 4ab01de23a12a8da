"""
DMA (Daily Moving Average) Signal Classifier

50 / 150 / 200 day simple moving averages over closes, two interchangeable
strategies on top of them:

- TrendFollowingStrategy ('trend'): full framework. No-trade filter, tiered
  exits (partial / majority / full), pullback and reversal entries, shorts.
- SwingStrategy ('swing'): simplified swing trading on quality names. Buy at
  the 150 DMA, trim 30% when extended 10-15% above the 50 DMA.

Both need at least 200 bars; with less they return None (insufficient data),
which callers must not confuse with a ValidationError.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from ..models import (
    DMAAlignment, DMAAnalysis, PricePoint, SignalStrength, SwingSignal,
    TrendSignal, TrendState
)
from ..validation import sort_by_date, validate

logger = logging.getLogger(__name__)

DMA_PERIODS = (50, 150, 200)
MIN_BARS = 200

TREND_BAND_PCT = 2.0         # price vs 200 DMA for BULLISH / BEARISH
TANGLED_PCT = 2.0            # DMAs closer than this = no trend
OVEREXTENDED_PCT = 15.0      # price above 50 DMA = chasing
NEAR_DMA_PCT = 3.0           # pullback / resistance proximity
CROSSOVER_LOOKBACK = 10      # bars scanned for a fresh 200 DMA cross

SWING_NEAR_150_PCT = 2.0
SWING_TRIM_LOW_PCT = 10.0
SWING_TRIM_HIGH_PCT = 15.0


def calculate_dma(closes: Sequence[float], period: int) -> pd.Series:
    """
    Simple moving average aligned to each bar.

    Value at index i averages closes[i-period+1 .. i]; NaN until enough bars.
    """
    return pd.Series(list(closes), dtype=float).rolling(window=period, min_periods=period).mean()


def add_dma_values(series: Sequence[PricePoint]) -> pd.DataFrame:
    """
    Frame with date, close and one dma{N} column per period in DMA_PERIODS.

    The series must already be sorted and validated.
    """
    frame = pd.DataFrame({
        'date': [p.date for p in series],
        'close': [float(p.close) for p in series],
    })
    for period in DMA_PERIODS:
        frame[f'dma{period}'] = calculate_dma(frame['close'], period)
    return frame


def pct_distance(value: float, reference: float) -> float:
    """(value - reference) / reference, in %."""
    return (value - reference) / reference * 100


def get_trend_state(price: float, dma200: float) -> TrendState:
    diff = pct_distance(price, dma200)
    if diff > TREND_BAND_PCT:
        return TrendState.BULLISH
    if diff < -TREND_BAND_PCT:
        return TrendState.BEARISH
    return TrendState.NEUTRAL


def check_dma_alignment(dma50: float, dma150: float, dma200: float) -> DMAAlignment:
    if dma50 > dma150 > dma200:
        return DMAAlignment.BULLISH_ALIGNED
    if dma50 < dma150 < dma200:
        return DMAAlignment.BEARISH_ALIGNED
    return DMAAlignment.MIXED


@dataclass(frozen=True)
class DMASnapshot:
    """Latest bar plus the full frame (history up to and including it)."""
    price: float
    dma50: float
    dma150: float
    dma200: float
    frame: pd.DataFrame

    @property
    def trend_state(self) -> TrendState:
        return get_trend_state(self.price, self.dma200)


class DMAStrategy(ABC):
    """
    Shared pipeline: sort, validate, compute DMAs, take the latest bar, then
    let the concrete strategy derive signal, recommendation and evidence.
    """

    name = ''

    def analyze(self, series: Sequence[PricePoint]) -> Optional[DMAAnalysis]:
        """
        Args:
            series: Daily bars, any order (sorted here on a copy)

        Returns:
            DMAAnalysis, or None when fewer than 200 bars are available

        Raises:
            ValidationError: malformed bar
        """
        if series is None or len(series) < MIN_BARS:
            logger.debug(f"{self.name}: {0 if series is None else len(series)} bars, need {MIN_BARS}")
            return None

        ordered = validate(sort_by_date(series))
        frame = add_dma_values(ordered)
        latest = frame.iloc[-1]

        if latest[['dma50', 'dma150', 'dma200']].isna().any():
            return None

        snapshot = DMASnapshot(
            price=float(latest['close']),
            dma50=float(latest['dma50']),
            dma150=float(latest['dma150']),
            dma200=float(latest['dma200']),
            frame=frame
        )
        signal, strength, recommendation, details = self.classify(snapshot)

        return DMAAnalysis(
            strategy=self.name,
            current_price=snapshot.price,
            dma50=snapshot.dma50,
            dma150=snapshot.dma150,
            dma200=snapshot.dma200,
            trend_state=snapshot.trend_state,
            signal=signal,
            dma_alignment=check_dma_alignment(snapshot.dma50, snapshot.dma150, snapshot.dma200),
            distance_from_dma50_pct=pct_distance(snapshot.price, snapshot.dma50),
            distance_from_dma150_pct=pct_distance(snapshot.price, snapshot.dma150),
            distance_from_dma200_pct=pct_distance(snapshot.price, snapshot.dma200),
            recommendation=recommendation,
            details=tuple(details),
            signal_strength=strength
        )

    @abstractmethod
    def classify(
        self, snapshot: DMASnapshot
    ) -> Tuple[Union[TrendSignal, SwingSignal], Optional[SignalStrength], str, List[str]]:
        """Return (signal, strength, recommendation, details)."""


# ============================================================================
# FULL TREND-FOLLOWING STRATEGY
# ============================================================================

class TrendFollowingStrategy(DMAStrategy):
    """
    50/150/200 trend-following framework.

    Order of evaluation:
    1. No-trade filter (tangled DMAs or price >15% above 50 DMA) stops here
    2. Exits, first match wins: <200 DMA full, 50<150 majority, <50 DMA partial
    3. BULLISH: Setup A pullback, else Setup B reversal, else wait
    4. BEARISH: short setup, else stay out
    5. NEUTRAL: capital protection
    """

    name = 'trend'

    def classify(self, snapshot: DMASnapshot):
        price, dma50, dma150, dma200 = snapshot.price, snapshot.dma50, snapshot.dma150, snapshot.dma200
        trend_state = snapshot.trend_state

        should_not_trade, reasons = self.check_no_trade(price, dma50, dma150, dma200)
        if should_not_trade:
            return TrendSignal.NO_TRADE, SignalStrength.NONE, "No trend = no money", reasons

        sell_signal, sell_details = self.check_sell_signals(price, dma50, dma150, dma200)
        if sell_signal is not None:
            strength = {
                TrendSignal.SELL_FULL: SignalStrength.STRONG,
                TrendSignal.SELL_MAJORITY: SignalStrength.MODERATE,
                TrendSignal.SELL_PARTIAL: SignalStrength.WEAK,
            }[sell_signal]
            return sell_signal, strength, "Exit position", sell_details

        if trend_state == TrendState.BULLISH:
            setup_a, details_a = self.check_buy_setup_a(price, dma50, dma150, dma200)
            if setup_a:
                return TrendSignal.BUY_SETUP_A, SignalStrength.STRONG, "Buy pullback - Best setup", details_a

            setup_b, details_b = self.check_buy_setup_b(snapshot.frame, dma50, dma150)
            if setup_b:
                return TrendSignal.BUY_SETUP_B, SignalStrength.MODERATE, "Trend reversal - Higher risk", details_b

            return (TrendSignal.HOLD, SignalStrength.NONE, "Wait for pullback to 50 DMA",
                    ["Bullish trend, but no entry signal yet"])

        if trend_state == TrendState.BEARISH:
            short, details_short = self.check_short_setup(price, dma50, dma150, dma200)
            if short:
                return TrendSignal.SHORT, SignalStrength.MODERATE, "Short opportunity (advanced)", details_short
            return (TrendSignal.HOLD, SignalStrength.NONE, "Stay out - Bearish trend",
                    ["Bearish bias - Only SHORT or stay out"])

        return (TrendSignal.HOLD, SignalStrength.NONE, "Capital protection mode",
                ["Price chopping around 200 DMA - No clear trend"])

    @staticmethod
    def check_no_trade(price: float, dma50: float, dma150: float, dma200: float) -> Tuple[bool, List[str]]:
        reasons = []

        diff_50_150 = abs(pct_distance(dma50, dma150))
        diff_150_200 = abs(pct_distance(dma150, dma200))
        diff_50_200 = abs(pct_distance(dma50, dma200))
        if min(diff_50_150, diff_150_200, diff_50_200) < TANGLED_PCT:
            reasons.append("✗ DMAs tangled together")

        extension = pct_distance(price, dma50)
        if extension > OVEREXTENDED_PCT:
            reasons.append(f"✗ Price extended {extension:.1f}% above 50 DMA")

        return len(reasons) > 0, reasons

    @staticmethod
    def check_sell_signals(
        price: float, dma50: float, dma150: float, dma200: float
    ) -> Tuple[Optional[TrendSignal], List[str]]:
        if price < dma200:
            return TrendSignal.SELL_FULL, ["FULL EXIT - Price below 200 DMA"]
        if dma50 < dma150:
            return TrendSignal.SELL_MAJORITY, ["EXIT MAJORITY - 50 DMA below 150 DMA"]
        if price < dma50:
            return TrendSignal.SELL_PARTIAL, ["PARTIAL EXIT - Price below 50 DMA"]
        return None, ["✓ No immediate sell signals"]

    @staticmethod
    def check_buy_setup_a(price: float, dma50: float, dma150: float, dma200: float) -> Tuple[bool, List[str]]:
        """Strong trend continuation: aligned DMAs, price just above the 50 DMA."""
        above_200 = price > dma200
        stacked_150_200 = dma150 > dma200
        stacked_50_150 = dma50 > dma150
        near_50 = abs(pct_distance(price, dma50)) < NEAR_DMA_PCT
        above_50 = price > dma50

        details = [
            "✓ Price > 200 DMA" if above_200 else "✗ Price NOT > 200 DMA",
            "✓ 150 DMA > 200 DMA" if stacked_150_200 else "✗ 150 DMA NOT > 200 DMA",
            "✓ 50 DMA > 150 DMA" if stacked_50_150 else "✗ 50 DMA NOT > 150 DMA",
        ]
        if near_50 and above_50:
            details.append("✓ Price near 50 DMA support")
        elif not near_50:
            details.append("✗ Price too far from 50 DMA")

        return above_200 and stacked_150_200 and stacked_50_150 and near_50 and above_50, details

    @staticmethod
    def crossed_above_200(frame: pd.DataFrame, lookback: int = CROSSOVER_LOOKBACK) -> bool:
        """
        True if a close crossed above the 200 DMA within the last `lookback` bars.

        Only rows up to the latest bar are read, so no future information leaks
        into the decision. Bars without a 200 DMA yet are skipped.
        """
        recent = frame.iloc[-lookback:]
        closes = recent['close'].tolist()
        dmas = recent['dma200'].tolist()

        for i in range(1, len(recent)):
            if pd.isna(dmas[i - 1]) or pd.isna(dmas[i]):
                continue
            if closes[i - 1] <= dmas[i - 1] and closes[i] > dmas[i]:
                return True
        return False

    def check_buy_setup_b(self, frame: pd.DataFrame, dma50: float, dma150: float) -> Tuple[bool, List[str]]:
        """Trend reversal: fresh cross above the 200 DMA with 50 > 150."""
        crossed = self.crossed_above_200(frame)
        stacked_50_150 = dma50 > dma150

        details = [
            "✓ Price crossed above 200 DMA" if crossed else "✗ No recent cross above 200 DMA",
            "✓ 50 DMA > 150 DMA" if stacked_50_150 else "✗ 50 DMA NOT > 150 DMA",
            "Higher risk, higher upside",
        ]
        return crossed and stacked_50_150, details

    @staticmethod
    def check_short_setup(price: float, dma50: float, dma150: float, dma200: float) -> Tuple[bool, List[str]]:
        below_200 = price < dma200
        bearish_stack = dma50 < dma150 < dma200
        near_resistance = (abs(pct_distance(price, dma50)) < NEAR_DMA_PCT
                           or abs(pct_distance(price, dma150)) < NEAR_DMA_PCT)

        details = [
            "✓ Price < 200 DMA" if below_200 else "✗ Price NOT < 200 DMA",
            "✓ 50 < 150 < 200 DMA" if bearish_stack else "✗ DMAs not aligned for short",
        ]
        if near_resistance:
            details.append("✓ Price near resistance")

        signal = below_200 and bearish_stack and near_resistance
        if signal:
            details.append("SHORT SETUP - Advanced traders only")
        return signal, details


# ============================================================================
# SIMPLIFIED SWING STRATEGY
# ============================================================================

class SwingStrategy(DMAStrategy):
    """
    Swing trading on quality stocks.

    - BUY_AT_150DMA: price within 2% of the 150 DMA and above the 200 DMA
    - REDUCE_30_PERCENT: 10-15% above the 50 DMA (stronger wording past 15%)
    - HOLD: above the 150 DMA, 0-10% above the 50 DMA
    - WAIT: everything else
    """

    name = 'swing'

    def classify(self, snapshot: DMASnapshot):
        price, dma50, dma150, dma200 = snapshot.price, snapshot.dma50, snapshot.dma150, snapshot.dma200
        from_50 = pct_distance(price, dma50)
        from_150 = pct_distance(price, dma150)

        if abs(from_150) <= SWING_NEAR_150_PCT and price > dma200:
            return SwingSignal.BUY_AT_150DMA, None, "Strong Buy - Entry at 150 DMA", [
                "Price at 150 DMA - Perfect entry point",
                f"✓ Price: {price:.2f}",
                f"✓ 150 DMA: {dma150:.2f}",
                f"✓ Distance from 150 DMA: {from_150:.2f}%",
                "✓ Above 200 DMA - Bullish trend intact",
                "Action: BUY for swing trade",
            ]

        if SWING_TRIM_LOW_PCT <= from_50 <= SWING_TRIM_HIGH_PCT:
            return SwingSignal.REDUCE_30_PERCENT, None, "Take Profits - Reduce 30% position", [
                "Price extended 10-15% above 50 DMA",
                f"✓ Price: {price:.2f}",
                f"✓ 50 DMA: {dma50:.2f}",
                f"✓ Extension: {from_50:.2f}%",
                "Action: REDUCE position by 30%",
                "Lock in profits, keep 70% for further upside",
            ]

        if from_50 > SWING_TRIM_HIGH_PCT:
            return SwingSignal.REDUCE_30_PERCENT, None, "Highly Extended - Consider larger reduction", [
                "Price extended >15% above 50 DMA",
                f"✓ Price: {price:.2f}",
                f"✓ 50 DMA: {dma50:.2f}",
                f"✓ Extension: {from_50:.2f}%",
                "Action: REDUCE position by 30-50%",
                "Highly extended - consider reducing more",
            ]

        if price > dma150 and 0 < from_50 < SWING_TRIM_LOW_PCT:
            return SwingSignal.HOLD, None, "Hold Position", [
                "In good position, not at profit-taking level yet",
                f"✓ Price: {price:.2f}",
                f"✓ Above 150 DMA: {dma150:.2f}",
                f"✓ Distance from 50 DMA: {from_50:.2f}%",
                "Action: HOLD - Let winners run",
                "Wait for 10%+ extension above 50 DMA to take profits",
            ]

        details = [
            "Not at entry point",
            f"✓ Price: {price:.2f}",
            f"✓ 150 DMA: {dma150:.2f}",
            f"✓ Distance from 150 DMA: {from_150:.2f}%",
        ]
        if price < dma200:
            details.append("Below 200 DMA - awaiting trend confirmation")
        else:
            details.append("Wait for pullback to 150 DMA for entry")
        return SwingSignal.WAIT, None, "Wait for better entry", details


# ============================================================================
# STRATEGY SELECTION
# ============================================================================

STRATEGIES: Dict[str, DMAStrategy] = {
    TrendFollowingStrategy.name: TrendFollowingStrategy(),
    SwingStrategy.name: SwingStrategy(),
}

SIGNAL_DESCRIPTIONS = {
    TrendSignal.BUY_SETUP_A: "Strong Buy - Pullback Setup",
    TrendSignal.BUY_SETUP_B: "Buy - Reversal Setup",
    TrendSignal.SELL_PARTIAL: "Partial Exit (30-50%)",
    TrendSignal.SELL_MAJORITY: "Exit Majority",
    TrendSignal.SELL_FULL: "FULL EXIT NOW",
    TrendSignal.SHORT: "Short Setup",
    TrendSignal.HOLD: "Hold Position",
    TrendSignal.NO_TRADE: "No Trade Zone",
    SwingSignal.BUY_AT_150DMA: "BUY - At 150 DMA",
    SwingSignal.REDUCE_30_PERCENT: "REDUCE 30%",
    SwingSignal.HOLD: "Hold Position",
    SwingSignal.WAIT: "Wait for Entry",
}


def get_strategy(name: Union[str, DMAStrategy]) -> DMAStrategy:
    if isinstance(name, DMAStrategy):
        return name
    try:
        return STRATEGIES[str(name).lower()]
    except KeyError:
        raise ValueError(f"Unknown DMA strategy: {name!r} (expected one of {sorted(STRATEGIES)})")


def analyze_dma(series: Sequence[PricePoint], strategy: Union[str, DMAStrategy] = 'trend') -> Optional[DMAAnalysis]:
    """Run one of the DMA strategies over a daily series."""
    return get_strategy(strategy).analyze(series)


def describe_signal(signal: Union[TrendSignal, SwingSignal]) -> str:
    return SIGNAL_DESCRIPTIONS[signal]
