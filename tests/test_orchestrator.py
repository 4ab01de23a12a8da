"""
Unit tests for the market-data orchestrator: routing, caching, validation.
Providers are call-counting stubs; time comes from a fake clock.
"""
import json
from unittest.mock import Mock, patch

import pytest

from stockwatch.models import PricePoint, Region
from stockwatch.orchestrator import MarketDataOrchestrator, ProviderRoute, build_orchestrator, main
from stockwatch.providers import FinnhubProvider, TwelveDataProvider, YahooFinanceProvider
from stockwatch.validation import ValidationError


def _stub_provider(name, price=100.0, history=None, recommendations=None):
    provider = Mock()
    provider.name = name
    provider.fetch_current_price.return_value = price
    provider.fetch_historical_data.return_value = history or []
    provider.fetch_recommendations.return_value = recommendations or []
    return provider


@pytest.fixture
def bars():
    return [
        PricePoint('2024-01-03', 12, 10, 11),
        PricePoint('2024-01-01', 10, 8, 9),
        PricePoint('2024-01-02', 11, 9, 10),
    ]


@pytest.fixture
def us_quotes():
    return _stub_provider('us_quotes', price=189.5, recommendations=[{'period': '2024-01-01', 'buy': 20}])


@pytest.fixture
def us_history(bars):
    return _stub_provider('us_history', history=bars)


@pytest.fixture
def india():
    return _stub_provider('india', price=2875.4)


@pytest.fixture
def orchestrator(us_quotes, us_history, india, clock):
    routes = {
        Region.US: ProviderRoute(quotes=us_quotes, history=us_history, recommendations=us_quotes),
        Region.INDIA: ProviderRoute(quotes=india, history=india),
    }
    return MarketDataOrchestrator(routes, clock=clock)


class TestRouting:

    def test_us_price_from_quotes_provider(self, orchestrator, us_quotes, india):
        assert orchestrator.fetch_current_price('AAPL', Region.US) == 189.5
        us_quotes.fetch_current_price.assert_called_once_with('AAPL')
        india.fetch_current_price.assert_not_called()

    def test_india_price(self, orchestrator, india):
        assert orchestrator.fetch_current_price('RELIANCE.NS', 'INDIA') == 2875.4
        india.fetch_current_price.assert_called_once_with('RELIANCE.NS')

    def test_history_from_history_provider(self, orchestrator, us_quotes, us_history):
        orchestrator.fetch_historical_data('AAPL', 'US', 90)
        us_history.fetch_historical_data.assert_called_once_with('AAPL', 90)
        us_quotes.fetch_historical_data.assert_not_called()

    def test_india_recommendations_empty(self, orchestrator, india):
        assert orchestrator.fetch_recommendations('RELIANCE.NS', Region.INDIA) == []
        india.fetch_recommendations.assert_not_called()

    def test_us_recommendations(self, orchestrator):
        assert orchestrator.fetch_recommendations('AAPL', Region.US) == [{'period': '2024-01-01', 'buy': 20}]

    def test_unconfigured_region(self, us_quotes, clock):
        orchestrator = MarketDataOrchestrator({Region.US: ProviderRoute(us_quotes, us_quotes)}, clock=clock)
        with pytest.raises(ValueError, match="No providers configured"):
            orchestrator.fetch_current_price('RELIANCE.NS', Region.INDIA)

    def test_unknown_region(self, orchestrator):
        with pytest.raises(ValueError, match="Unknown region"):
            orchestrator.fetch_current_price('AAPL', 'EU')


class TestCaching:

    def test_price_cached_for_30_minutes(self, orchestrator, us_quotes, clock):
        orchestrator.fetch_current_price('AAPL', Region.US)
        clock.advance(29 * 60)
        orchestrator.fetch_current_price('AAPL', Region.US)
        assert us_quotes.fetch_current_price.call_count == 1

        clock.advance(60)
        orchestrator.fetch_current_price('AAPL', Region.US)
        assert us_quotes.fetch_current_price.call_count == 2

    def test_history_cached_for_6_hours(self, orchestrator, us_history, clock):
        orchestrator.fetch_historical_data('AAPL', Region.US, 90)
        clock.advance(6 * 3600 - 1)
        orchestrator.fetch_historical_data('AAPL', Region.US, 90)
        assert us_history.fetch_historical_data.call_count == 1

        clock.advance(1)
        orchestrator.fetch_historical_data('AAPL', Region.US, 90)
        assert us_history.fetch_historical_data.call_count == 2

    def test_symbol_spelling_shares_cache_entry(self, orchestrator, us_quotes, us_history):
        orchestrator.fetch_current_price('AAPL', Region.US)
        orchestrator.fetch_current_price('aapl', Region.US)
        orchestrator.fetch_current_price(' AAPL ', Region.US)
        orchestrator.fetch_historical_data('msft', Region.US, 90)
        orchestrator.fetch_historical_data('MSFT ', Region.US, 90)

        us_quotes.fetch_current_price.assert_called_once_with('AAPL')
        us_history.fetch_historical_data.assert_called_once_with('MSFT', 90)

    def test_history_keyed_by_days(self, orchestrator, us_history):
        orchestrator.fetch_historical_data('AAPL', Region.US, 90)
        orchestrator.fetch_historical_data('AAPL', Region.US, 250)
        assert us_history.fetch_historical_data.call_count == 2

    def test_caches_are_independent_per_region(self, orchestrator, us_quotes, india):
        orchestrator.fetch_current_price('X', Region.US)
        orchestrator.fetch_current_price('X', Region.INDIA)
        assert us_quotes.fetch_current_price.call_count == 1
        assert india.fetch_current_price.call_count == 1

    def test_recommendations_cached(self, orchestrator, us_quotes, clock):
        orchestrator.fetch_recommendations('AAPL', Region.US)
        clock.advance(3600)
        orchestrator.fetch_recommendations('AAPL', Region.US)
        assert us_quotes.fetch_recommendations.call_count == 1

    def test_custom_ttls(self, us_quotes, clock):
        orchestrator = MarketDataOrchestrator(
            {Region.US: ProviderRoute(us_quotes, us_quotes)}, cache_ttls={'price': 10}, clock=clock
        )
        orchestrator.fetch_current_price('AAPL', Region.US)
        clock.advance(10)
        orchestrator.fetch_current_price('AAPL', Region.US)
        assert us_quotes.fetch_current_price.call_count == 2

    def test_provider_errors_not_cached(self, orchestrator, us_quotes):
        us_quotes.fetch_current_price.side_effect = [RuntimeError("down"), 190.0]

        with pytest.raises(RuntimeError):
            orchestrator.fetch_current_price('AAPL', Region.US)
        assert orchestrator.fetch_current_price('AAPL', Region.US) == 190.0

    def test_clear_caches_and_metrics(self, orchestrator, us_quotes):
        orchestrator.fetch_current_price('AAPL', Region.US)
        orchestrator.clear_caches()
        orchestrator.fetch_current_price('AAPL', Region.US)

        assert us_quotes.fetch_current_price.call_count == 2
        stats = orchestrator.get_metrics()['cache_stats']['price']
        assert stats['misses'] == 2


class TestHistoricalData:

    def test_sorted_ascending(self, orchestrator):
        series = orchestrator.fetch_historical_data('AAPL', Region.US, 3)
        assert [p.date for p in series] == ['2024-01-01', '2024-01-02', '2024-01-03']

    def test_cached_copy_not_shared(self, orchestrator):
        first = orchestrator.fetch_historical_data('AAPL', Region.US, 3)
        first.clear()
        assert len(orchestrator.fetch_historical_data('AAPL', Region.US, 3)) == 3

    def test_invalid_bars_rejected_and_not_cached(self, orchestrator, us_history):
        us_history.fetch_historical_data.return_value = [PricePoint('2024-01-01', 8, 10, 9)]

        with pytest.raises(ValidationError, match="High must be >= low"):
            orchestrator.fetch_historical_data('AAPL', Region.US, 1)
        with pytest.raises(ValidationError):
            orchestrator.fetch_historical_data('AAPL', Region.US, 1)
        assert us_history.fetch_historical_data.call_count == 2

    @pytest.mark.parametrize("days", [0, -5, 2.5, True])
    def test_invalid_days(self, orchestrator, days):
        with pytest.raises(ValueError, match="days"):
            orchestrator.fetch_historical_data('AAPL', Region.US, days)


class TestBuildOrchestrator:

    @pytest.fixture
    def config(self):
        return {
            'providers': {
                'override': None,
                'finnhub': {'api_key': 'f', 'rate_limit_per_minute': 60},
                'twelvedata': {'api_key': 't', 'rate_limit_per_minute': 8},
                'alphavantage': {'api_key': 'a'},
            },
            'cache': {'price_ttl_minutes': 5, 'historical_ttl_hours': 1, 'recommendations_ttl_hours': 2},
        }

    def test_default_routing(self, config):
        orchestrator = build_orchestrator(config)

        us = orchestrator.routes[Region.US]
        assert isinstance(us.quotes, FinnhubProvider)
        assert isinstance(us.history, TwelveDataProvider)
        assert us.recommendations is us.quotes

        india = orchestrator.routes[Region.INDIA]
        assert isinstance(india.quotes, YahooFinanceProvider)
        assert india.history is india.quotes
        assert india.recommendations is None

    def test_ttls_from_config(self, config):
        orchestrator = build_orchestrator(config)
        assert orchestrator.price_cache.ttl == 300
        assert orchestrator.historical_cache.ttl == 3600
        assert orchestrator.recommendations_cache.ttl == 7200

    def test_single_provider_override(self, config):
        config['providers']['override'] = 'twelvedata'
        us = build_orchestrator(config).routes[Region.US]

        assert isinstance(us.quotes, TwelveDataProvider)
        assert us.history is us.quotes
        assert us.recommendations is None

    def test_unknown_override(self, config):
        config['providers']['override'] = 'bloomberg'
        with pytest.raises(ValueError, match="Unknown provider override"):
            build_orchestrator(config)


class TestCLI:

    @patch('stockwatch.orchestrator.build_orchestrator')
    def test_price_command(self, mock_build, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        orchestrator = Mock()
        orchestrator.fetch_current_price.side_effect = lambda symbol, region: {'AAPL': 189.254}[symbol]
        mock_build.return_value = orchestrator

        exit_code = main(['--config', 'missing.yaml', 'price', 'AAPL'])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output['results'] == {'AAPL': 189.25}
        assert output['total_successful'] == 1

    @patch('stockwatch.orchestrator.build_orchestrator')
    def test_failures_reported(self, mock_build, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        orchestrator = Mock()
        orchestrator.fetch_current_price.side_effect = RuntimeError("upstream down")
        mock_build.return_value = orchestrator

        exit_code = main(['--config', 'missing.yaml', 'price', 'AAPL'])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 1
        assert output['errors'] == {'AAPL': 'upstream down'}
        assert output['total_failed'] == 1

    @patch('stockwatch.orchestrator.build_orchestrator')
    def test_region_after_subcommand(self, mock_build, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        orchestrator = Mock()
        orchestrator.fetch_current_price.return_value = 2875.4
        mock_build.return_value = orchestrator

        exit_code = main(['--config', 'missing.yaml', 'price', 'RELIANCE.NS', '--region', 'INDIA'])

        assert exit_code == 0
        orchestrator.fetch_current_price.assert_called_once_with('RELIANCE.NS', 'INDIA')
        assert json.loads(capsys.readouterr().out)['results'] == {'RELIANCE.NS': 2875.4}
