"""
Market-data orchestrator and CLI entry point.

Routing (default, see build_orchestrator):
- US: Finnhub quotes + recommendations, Twelve Data daily history
- INDIA: Yahoo Finance quotes + history, no recommendations

Three independent TTL caches sit in front of the providers:
- price:            30 minutes   key SYMBOL_REGION
- historical:       6 hours      key SYMBOL_DAYS_REGION
- recommendations:  6 hours      key SYMBOL_REGION
"""
import json
import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .cache import (
    HISTORICAL_TTL_SECONDS, PRICE_TTL_SECONDS, RECOMMENDATIONS_TTL_SECONDS, TTLCache, make_key
)
from .models import PricePoint, Region
from .providers import (
    AlphaVantageProvider, FinnhubProvider, StockDataProvider, TwelveDataProvider, YahooFinanceProvider
)
from .validation import sort_by_date, validate

logger = logging.getLogger(__name__)


def normalize_symbol(symbol: str) -> str:
    """Cache and routing spelling: ' aapl ' and 'AAPL' are the same listing."""
    return symbol.strip().upper()


@dataclass(frozen=True)
class ProviderRoute:
    """Which provider serves which request type for one region."""
    quotes: StockDataProvider
    history: StockDataProvider
    recommendations: Optional[StockDataProvider] = None


class MarketDataOrchestrator:
    """
    Region-aware facade over the providers.

    A cache hit short-circuits the provider entirely; a miss fetches, stores
    and returns. Historical series are sorted ascending and validated before
    they are cached, so every consumer gets calculator-ready data.
    """

    def __init__(
        self,
        routes: Mapping[Region, ProviderRoute],
        cache_ttls: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            routes: Provider route per region
            cache_ttls: Seconds per cache ('price', 'historical', 'recommendations')
            clock: Monotonic seconds source shared by the caches
        """
        self.routes = {Region.parse(region): route for region, route in routes.items()}

        ttls = {
            'price': PRICE_TTL_SECONDS,
            'historical': HISTORICAL_TTL_SECONDS,
            'recommendations': RECOMMENDATIONS_TTL_SECONDS,
        }
        ttls.update(cache_ttls or {})

        self.price_cache = TTLCache('price', ttls['price'], clock)
        self.historical_cache = TTLCache('historical', ttls['historical'], clock)
        self.recommendations_cache = TTLCache('recommendations', ttls['recommendations'], clock)

    def _route(self, region: Union[str, Region]) -> ProviderRoute:
        region = Region.parse(region)
        try:
            return self.routes[region]
        except KeyError:
            raise ValueError(f"No providers configured for region {region.value}")

    def fetch_current_price(self, symbol: str, region: Union[str, Region]) -> float:
        region = Region.parse(region)
        symbol = normalize_symbol(symbol)
        key = make_key(symbol, region)

        cached = self.price_cache.get(key)
        if cached is not None:
            return cached

        provider = self._route(region).quotes
        logger.info(f"Fetching price for {symbol} ({region.value}) from {provider.name}")
        price = provider.fetch_current_price(symbol)

        self.price_cache.set(key, price)
        return price

    def fetch_historical_data(self, symbol: str, region: Union[str, Region], days: int) -> List[PricePoint]:
        """
        Daily bars, oldest first.

        Raises:
            ValueError: days is not a positive integer
            ValidationError: provider returned malformed bars
            ProviderError: upstream failure
        """
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ValueError(f"days must be a positive integer, got {days!r}")

        region = Region.parse(region)
        symbol = normalize_symbol(symbol)
        key = make_key(symbol, days, region)

        cached = self.historical_cache.get(key)
        if cached is not None:
            return list(cached)

        provider = self._route(region).history
        logger.info(f"Fetching {days}d history for {symbol} ({region.value}) from {provider.name}")
        series = validate(sort_by_date(provider.fetch_historical_data(symbol, days)))

        self.historical_cache.set(key, tuple(series))
        return list(series)

    def fetch_recommendations(self, symbol: str, region: Union[str, Region]) -> List[Dict]:
        """Analyst recommendation trends; [] where the region has no coverage."""
        region = Region.parse(region)
        symbol = normalize_symbol(symbol)
        provider = self._route(region).recommendations
        if provider is None:
            return []

        key = make_key(symbol, region)
        cached = self.recommendations_cache.get(key)
        if cached is not None:
            return list(cached)

        logger.info(f"Fetching recommendations for {symbol} ({region.value}) from {provider.name}")
        recommendations = provider.fetch_recommendations(symbol)

        self.recommendations_cache.set(key, tuple(recommendations))
        return list(recommendations)

    def clear_caches(self):
        for cache in (self.price_cache, self.historical_cache, self.recommendations_cache):
            cache.clear()

    def get_metrics(self) -> Dict[str, Any]:
        """Cache stats plus request metrics of every HTTP provider in use."""
        providers = {}
        for route in self.routes.values():
            for provider in (route.quotes, route.history, route.recommendations):
                if provider is not None and hasattr(provider, 'get_metrics'):
                    providers[provider.name] = provider.get_metrics()

        return {
            "cache_stats": {
                "price": self.price_cache.get_stats(),
                "historical": self.historical_cache.get_stats(),
                "recommendations": self.recommendations_cache.get_stats()
            },
            "providers": providers
        }


US_PROVIDERS = {
    'finnhub': FinnhubProvider,
    'twelvedata': TwelveDataProvider,
    'alphavantage': AlphaVantageProvider,
}


def build_orchestrator(config: Dict, clock: Callable[[], float] = time.monotonic) -> MarketDataOrchestrator:
    """
    Composition root: providers from `config['providers']`, TTLs from
    `config['cache']`.

    `providers.override` (finnhub | twelvedata | alphavantage) sends every US
    request to that one provider. Only Finnhub serves recommendations.
    """
    provider_config = config.get('providers', {})
    override = provider_config.get('override')

    def make(name):
        return US_PROVIDERS[name].from_config(provider_config.get(name, {}))

    if override:
        if override not in US_PROVIDERS:
            raise ValueError(f"Unknown provider override: {override!r} (expected one of {sorted(US_PROVIDERS)})")
        provider = make(override)
        us_route = ProviderRoute(
            quotes=provider,
            history=provider,
            recommendations=provider if override == 'finnhub' else None
        )
        logger.info(f"US provider override: {override}")
    else:
        finnhub = make('finnhub')
        us_route = ProviderRoute(quotes=finnhub, history=make('twelvedata'), recommendations=finnhub)

    yahoo = YahooFinanceProvider(default_suffix=provider_config.get('yahoo', {}).get('default_suffix', '.NS'))
    india_route = ProviderRoute(quotes=yahoo, history=yahoo)

    cache_config = config.get('cache', {})
    cache_ttls = {
        'price': cache_config.get('price_ttl_minutes', 30) * 60,
        'historical': cache_config.get('historical_ttl_hours', 6) * 3600,
        'recommendations': cache_config.get('recommendations_ttl_hours', 6) * 3600,
    }

    return MarketDataOrchestrator({Region.US: us_route, Region.INDIA: india_route}, cache_ttls, clock)


def main(argv: Optional[List[str]] = None):
    """CLI entry point."""
    import argparse

    from . import batch
    from .config import load_config, setup_logging
    from .formatters import summarize
    from .market_hours import is_market_open, next_market_open

    parser = argparse.ArgumentParser(description='StockWatch signal engine')
    parser.add_argument('--config', default='settings.yaml', help='Path to config file')
    subparsers = parser.add_subparsers(dest='command', required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('symbols', nargs='+')
    common.add_argument('--region', default='US', help='US or INDIA')
    common.add_argument('--parallel', action='store_true', help='Fan out symbols on a thread pool')

    vol = subparsers.add_parser('volatility', parents=[common], help='ATR volatility stop and trailing stops')
    vol.add_argument('--days', type=int, help='History window (default: batch.historical_days)')
    vol.add_argument('--atr-period', type=int, help='ATR period')
    vol.add_argument('--multiplier', type=float, help='ATR multiplier')

    dma = subparsers.add_parser('dma', parents=[common], help='50/150/200 DMA signals')
    dma.add_argument('--strategy', choices=['trend', 'swing'], help='DMA strategy')

    subparsers.add_parser('price', parents=[common], help='Current quotes')

    args = parser.parse_args(argv)

    config_path = args.config if Path(args.config).exists() else None
    config = load_config(config_path)
    setup_logging(config)
    if config_path is None:
        logger.warning(f"Config file {args.config} not found, using defaults")

    orchestrator = build_orchestrator(config)
    batch_config = config['batch']
    batch.check_batch_size(args.symbols, batch_config['max_stocks_per_batch'])

    if batch_config.get('skip_when_market_closed') and not is_market_open(args.region):
        logger.info(f"{args.region} market closed, next open {next_market_open(args.region).isoformat()}; skipping")
        return 0

    if args.command == 'volatility':
        vol_config = config['volatility']
        alert_config = config['alerts']

        def task(symbol):
            return batch.analyze_volatility(
                orchestrator, symbol, args.region,
                days=args.days or batch_config['historical_days'],
                atr_period=args.atr_period or vol_config['atr_period'],
                multiplier=args.multiplier or vol_config['multiplier'],
                allow_buy_signal=vol_config['allow_buy_signal'],
                sell_above_pct=vol_config['sell_above_pct'],
                buy_below_pct=vol_config['buy_below_pct'],
                high_volatility_pct=alert_config['high_volatility_pct'],
                approaching_pct=alert_config['approaching_stop_pct']
            )
    elif args.command == 'dma':
        dma_config = config['dma']

        def task(symbol):
            return batch.analyze_dma_for_symbol(
                orchestrator, symbol, args.region,
                strategy=args.strategy or dma_config['strategy'],
                days=dma_config['history_days'],
                min_bars=dma_config['min_bars_for_padding']
            )
    else:
        def task(symbol):
            return orchestrator.fetch_current_price(symbol, args.region)

    if args.parallel:
        report = batch.run_parallel(args.symbols, task, batch_config['max_workers'])
    else:
        report = batch.run_sequential(args.symbols, task, batch_config['api_delay_ms'] / 1000)

    output = {
        'results': summarize(report.results),
        'errors': report.errors,
        'total_processed': report.total_processed,
        'total_successful': report.total_successful,
        'total_failed': report.total_failed,
    }
    print(json.dumps(output, indent=2, ensure_ascii=False))
    logger.debug(f"Metrics: {orchestrator.get_metrics()}")
    return 0 if report.total_failed == 0 else 1


if __name__ == '__main__':
    raise SystemExit(main())
