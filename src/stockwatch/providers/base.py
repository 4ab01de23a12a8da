"""
Provider interface. The orchestrator depends only on this; every
provider-specific detail (URLs, payload shapes, symbol suffixes) stays in
the concrete adapter.
"""
from abc import ABC, abstractmethod
from typing import Dict, List

from ..models import PricePoint


class StockDataProvider(ABC):
    name = 'provider'

    def normalize_symbol(self, symbol: str) -> str:
        """Provider's spelling of `symbol`. Pure and idempotent."""
        return symbol.strip().upper()

    @abstractmethod
    def fetch_current_price(self, symbol: str) -> float: ...

    @abstractmethod
    def fetch_historical_data(self, symbol: str, days: int) -> List[PricePoint]: ...

    def fetch_recommendations(self, symbol: str) -> List[Dict]:
        """Analyst recommendation trends. Empty when the provider has none."""
        return []
