"""
Twelve Data adapter (US daily history).

Free tier: 800 API credits/day, 8 credits/minute. The sliding-window
limiter in ApiClient keeps us under the per-minute budget; a 'run out of
API credits' body is still retried with backoff.
"""
import logging
from typing import Any, List, Optional

from ..ingest import ApiClient, ProviderError
from ..models import PricePoint
from .base import StockDataProvider

logger = logging.getLogger(__name__)

EXCHANGE_SUFFIXES = {
    '.NSE': 'NSE',
    '.NS': 'NSE',
    '.BSE': 'BSE',
    '.BO': 'BSE',
}


class TwelveDataProvider(ApiClient, StockDataProvider):
    name = 'twelvedata'
    base_url = 'https://api.twelvedata.com'
    key_param = 'apikey'
    default_rate_limit_per_minute = 8

    def normalize_symbol(self, symbol: str) -> str:
        """Bare ticker; the exchange travels separately (see exchange_for)."""
        symbol = symbol.strip().upper()
        for suffix in EXCHANGE_SUFFIXES:
            if symbol.endswith(suffix):
                return symbol[:-len(suffix)]
        return symbol

    @staticmethod
    def exchange_for(symbol: str) -> Optional[str]:
        symbol = symbol.strip().upper()
        for suffix, exchange in EXCHANGE_SUFFIXES.items():
            if symbol.endswith(suffix):
                return exchange
        return None

    def _symbol_params(self, symbol: str) -> dict:
        params = {'symbol': self.normalize_symbol(symbol)}
        exchange = self.exchange_for(symbol)
        if exchange:
            params['exchange'] = exchange
        return params

    def check_payload(self, data: Any) -> None:
        if isinstance(data, dict) and data.get('status') == 'error':
            raise ProviderError(f"Twelve Data error: {data.get('message', 'unknown error')}", provider=self.name)

    def fetch_current_price(self, symbol: str) -> float:
        """Endpoint: /price -> {'price': '189.25'}"""
        data = self._request('price', self._symbol_params(symbol))
        price = data.get('price') if isinstance(data, dict) else None
        if price is None:
            raise ProviderError(f"No price data available for {symbol}", provider=self.name)
        return float(price)

    def fetch_historical_data(self, symbol: str, days: int) -> List[PricePoint]:
        """
        Endpoint: /time_series (interval=1day, outputsize=days)
        Values arrive newest first as strings; returned oldest first.
        """
        params = self._symbol_params(symbol)
        params.update({'interval': '1day', 'outputsize': days})
        data = self._request('time_series', params)

        values = data.get('values') if isinstance(data, dict) else None
        if not isinstance(values, list) or not values:
            raise ProviderError(f"No historical data available for {symbol}", provider=self.name)

        points = [
            PricePoint(
                date=item['datetime'],
                high=float(item['high']),
                low=float(item['low']),
                close=float(item['close']),
                open=float(item['open']) if item.get('open') is not None else None
            )
            for item in reversed(values)
        ]
        logger.info(f"Twelve Data: {len(points)} daily bars for {symbol}")
        return points
