from .base import StockDataProvider
from .finnhub import FinnhubProvider
from .twelvedata import TwelveDataProvider
from .alphavantage import AlphaVantageProvider
from .yahoo import YahooFinanceProvider

__all__ = [
    'StockDataProvider',
    'FinnhubProvider',
    'TwelveDataProvider',
    'AlphaVantageProvider',
    'YahooFinanceProvider',
]
