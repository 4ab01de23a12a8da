"""
Finnhub adapter (US quotes, analyst recommendations, market status).

Free tier: 60 calls/minute.
"""
import time
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from ..ingest import ApiClient, ProviderError
from ..models import PricePoint
from .base import StockDataProvider

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class FinnhubProvider(ApiClient, StockDataProvider):
    name = 'finnhub'
    base_url = 'https://finnhub.io/api/v1'
    key_param = 'token'
    default_rate_limit_per_minute = 60

    def normalize_symbol(self, symbol: str) -> str:
        """RELIANCE.NS -> RELIANCE.NSE, TCS.BO -> TCS.BSE, AAPL unchanged."""
        symbol = symbol.strip().upper()
        if symbol.endswith('.NS'):
            return symbol[:-3] + '.NSE'
        if symbol.endswith('.BO'):
            return symbol[:-3] + '.BSE'
        return symbol

    def check_payload(self, data: Any) -> None:
        if isinstance(data, dict) and data.get('error'):
            raise ProviderError(f"Finnhub API error: {data['error']}", provider=self.name)

    def fetch_current_price(self, symbol: str) -> float:
        """
        Endpoint: /quote
        Returns {'c': current, 'h': high, 'l': low, 'o': open, 'pc': prev close, ...}.
        Finnhub answers unknown symbols with c == 0.
        """
        api_symbol = self.normalize_symbol(symbol)
        data = self._request('quote', {'symbol': api_symbol})

        price = data.get('c') if isinstance(data, dict) else None
        if not price:
            raise ProviderError(f"No price data available for {api_symbol}", provider=self.name)
        return float(price)

    def fetch_historical_data(self, symbol: str, days: int) -> List[PricePoint]:
        """
        Endpoint: /stock/candle (daily resolution)
        Returns parallel arrays {'s': 'ok', 't': [...], 'o', 'h', 'l', 'c'}.
        """
        api_symbol = self.normalize_symbol(symbol)
        to_ts = int(time.time())
        from_ts = to_ts - days * SECONDS_PER_DAY

        data = self._request('stock/candle', {
            'symbol': api_symbol,
            'resolution': 'D',
            'from': from_ts,
            'to': to_ts,
        })

        if not isinstance(data, dict) or data.get('s') != 'ok':
            status = data.get('s') if isinstance(data, dict) else None
            raise ProviderError(f"No historical data available for {api_symbol} (status: {status})",
                                provider=self.name)

        opens = data.get('o') or [None] * len(data['t'])
        points = [
            PricePoint(
                date=datetime.fromtimestamp(ts, tz=timezone.utc).strftime('%Y-%m-%d'),
                high=float(high),
                low=float(low),
                close=float(close),
                open=float(open_) if open_ is not None else None
            )
            for ts, high, low, close, open_ in zip(data['t'], data['h'], data['l'], data['c'], opens)
        ]
        logger.info(f"Finnhub: {len(points)} daily bars for {api_symbol}")
        return points

    def fetch_recommendations(self, symbol: str) -> List[Dict]:
        """
        Endpoint: /stock/recommendation
        Monthly trend rows: period, strongBuy, buy, hold, sell, strongSell.
        """
        api_symbol = self.normalize_symbol(symbol)
        data = self._request('stock/recommendation', {'symbol': api_symbol})
        if not isinstance(data, list):
            raise ProviderError(f"Unexpected recommendation payload for {api_symbol}", provider=self.name)
        return [row for row in data if isinstance(row, dict)]

    def fetch_market_status(self, exchange: str = 'US') -> Dict:
        """Endpoint: /stock/market-status -> {'exchange', 'isOpen', 'session', ...}"""
        return self._request('stock/market-status', {'exchange': exchange})
