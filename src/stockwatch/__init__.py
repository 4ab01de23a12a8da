"""
StockWatch - watchlist signal engine.

ATR trailing stops, 50/150/200 DMA signals and cached, rate-limited
multi-provider market data.
"""
__version__ = '0.1.0'
