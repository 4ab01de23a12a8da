"""
Yahoo Finance adapter (Indian listings) via the yfinance library.

No analyst recommendations: fetch_recommendations() stays empty.
"""
import logging
from datetime import date, timedelta
from typing import Callable, List

import yfinance as yf

from ..ingest import ProviderError
from ..models import PricePoint
from .base import StockDataProvider

logger = logging.getLogger(__name__)


class YahooFinanceProvider(StockDataProvider):
    name = 'yahoo'

    def __init__(self, ticker_factory: Callable = yf.Ticker, default_suffix: str = '.NS'):
        self._ticker = ticker_factory
        self.default_suffix = default_suffix

    def normalize_symbol(self, symbol: str) -> str:
        """SBICARD -> SBICARD.NS, X.NSE -> X.NS, X.BSE -> X.BO."""
        symbol = symbol.strip().upper()
        if symbol.endswith('.NSE'):
            return symbol[:-4] + '.NS'
        if symbol.endswith('.BSE'):
            return symbol[:-4] + '.BO'
        if '.' not in symbol:
            return symbol + self.default_suffix
        return symbol

    def fetch_current_price(self, symbol: str) -> float:
        api_symbol = self.normalize_symbol(symbol)
        try:
            ticker = self._ticker(api_symbol)
            price = getattr(ticker.fast_info, 'last_price', None)
        except Exception as e:
            raise ProviderError(f"Failed to fetch price for {api_symbol}: {e}", provider=self.name) from e

        if not price:
            raise ProviderError(f"No price data available for {api_symbol}", provider=self.name)
        return float(price)

    def fetch_historical_data(self, symbol: str, days: int) -> List[PricePoint]:
        """Daily bars for the last `days` calendar days."""
        api_symbol = self.normalize_symbol(symbol)
        end_date = date.today()
        start_date = end_date - timedelta(days=days)

        try:
            history = self._ticker(api_symbol).history(
                start=start_date.isoformat(),
                end=end_date.isoformat(),
                interval='1d'
            )
        except Exception as e:
            raise ProviderError(f"Failed to fetch historical data for {api_symbol}: {e}",
                                provider=self.name) from e

        if history is None or history.empty:
            raise ProviderError(f"No historical data available for {api_symbol}", provider=self.name)

        points = [
            PricePoint(
                date=index.strftime('%Y-%m-%d'),
                high=float(row['High']),
                low=float(row['Low']),
                close=float(row['Close']),
                open=float(row['Open']) if 'Open' in row else None
            )
            for index, row in history.iterrows()
        ]
        logger.info(f"Yahoo Finance: {len(points)} daily bars for {api_symbol}")
        return points
