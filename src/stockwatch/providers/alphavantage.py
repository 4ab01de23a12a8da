"""
Alpha Vantage adapter (alternative US provider).

Free tier: 5 calls/minute, 25/day. Throttled responses come back as HTTP
200 with a 'Note' or 'Information' body.
"""
import logging
from typing import Any, List

from ..ingest import ApiClient, ProviderError
from ..models import PricePoint
from .base import StockDataProvider

logger = logging.getLogger(__name__)


class AlphaVantageProvider(ApiClient, StockDataProvider):
    name = 'alphavantage'
    base_url = 'https://www.alphavantage.co'
    key_param = 'apikey'
    default_rate_limit_per_minute = 5

    def normalize_symbol(self, symbol: str) -> str:
        """Indian listings go through the BSE feed: X.NS / X.BO -> X.BSE."""
        symbol = symbol.strip().upper()
        if symbol.endswith('.NS') or symbol.endswith('.BO'):
            return symbol[:-3] + '.BSE'
        return symbol

    def check_payload(self, data: Any) -> None:
        if not isinstance(data, dict):
            return
        if 'Error Message' in data:
            raise ProviderError(f"Alpha Vantage error: {data['Error Message']}", provider=self.name)
        if 'Note' in data:
            raise ProviderError(f"Alpha Vantage rate limit: {data['Note']}", provider=self.name)
        if 'Information' in data:
            raise ProviderError(f"Alpha Vantage: {data['Information']}", provider=self.name)

    def fetch_current_price(self, symbol: str) -> float:
        """GLOBAL_QUOTE -> {'Global Quote': {'05. price': '189.2500', ...}}"""
        api_symbol = self.normalize_symbol(symbol)
        data = self._request('query', {'function': 'GLOBAL_QUOTE', 'symbol': api_symbol})

        quote = data.get('Global Quote') or {}
        price = quote.get('05. price')
        if price is None:
            raise ProviderError(f"No price data available for {api_symbol}", provider=self.name)
        return float(price)

    def fetch_historical_data(self, symbol: str, days: int) -> List[PricePoint]:
        """
        TIME_SERIES_DAILY -> {'Time Series (Daily)': {'2024-01-02': {'2. high': ...}}}
        Keys arrive newest first; keep the latest `days` and return oldest first.
        """
        api_symbol = self.normalize_symbol(symbol)
        data = self._request('query', {
            'function': 'TIME_SERIES_DAILY',
            'symbol': api_symbol,
            'outputsize': 'compact' if days <= 100 else 'full',
        })

        series = data.get('Time Series (Daily)')
        if not series:
            raise ProviderError(f"No historical data available for {api_symbol}", provider=self.name)

        latest = sorted(series.items(), key=lambda item: item[0], reverse=True)[:days]
        points = [
            PricePoint(
                date=date,
                high=float(values['2. high']),
                low=float(values['3. low']),
                close=float(values['4. close']),
                open=float(values['1. open']) if '1. open' in values else None
            )
            for date, values in reversed(latest)
        ]
        logger.info(f"Alpha Vantage: {len(points)} daily bars for {api_symbol}")
        return points
