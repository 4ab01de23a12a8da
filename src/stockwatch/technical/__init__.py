from .volatility import (
    calculate_atr,
    calculate_atr_series,
    calculate_trailing_stops,
    calculate_volatility_stop,
    true_range,
)
from .dma import (
    DMAStrategy,
    SwingStrategy,
    TrendFollowingStrategy,
    analyze_dma,
    describe_signal,
    get_strategy,
)

__all__ = [
    'calculate_atr',
    'calculate_atr_series',
    'calculate_trailing_stops',
    'calculate_volatility_stop',
    'true_range',
    'DMAStrategy',
    'SwingStrategy',
    'TrendFollowingStrategy',
    'analyze_dma',
    'describe_signal',
    'get_strategy',
]
