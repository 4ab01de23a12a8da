"""
Unit tests for settings loading and environment expansion.
"""
import pytest

from stockwatch.config import DEFAULT_CONFIG, deep_merge, expand_env_vars, load_config, setup_logging


@pytest.fixture
def no_env_file(tmp_path):
    return str(tmp_path / 'missing.env')


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # set-then-delete so anything .env loads is removed again at teardown
    for var in ('FINNHUB_API_KEY', 'TWELVE_DATA_API_KEY', 'ALPHA_VANTAGE_API_KEY'):
        monkeypatch.setenv(var, '')
        monkeypatch.delenv(var)


class TestExpandEnvVars:

    def test_braced_and_bare(self, monkeypatch):
        monkeypatch.setenv('STOCKWATCH_TEST_KEY', 'abc123')

        assert expand_env_vars('${STOCKWATCH_TEST_KEY}') == 'abc123'
        assert expand_env_vars('key=$STOCKWATCH_TEST_KEY') == 'key=abc123'

    def test_nested(self, monkeypatch):
        monkeypatch.setenv('STOCKWATCH_TEST_KEY', 'abc123')

        assert expand_env_vars({'a': ['${STOCKWATCH_TEST_KEY}', 5]}) == {'a': ['abc123', 5]}

    def test_unset_left_as_is(self, monkeypatch):
        monkeypatch.delenv('STOCKWATCH_UNSET', raising=False)
        assert expand_env_vars('${STOCKWATCH_UNSET}') == '${STOCKWATCH_UNSET}'


class TestDeepMerge:

    def test_nested_keys_preserved(self):
        merged = deep_merge({'a': {'x': 1, 'y': 2}, 'b': 1}, {'a': {'y': 3}})
        assert merged == {'a': {'x': 1, 'y': 3}, 'b': 1}

    def test_base_not_mutated(self):
        base = {'a': {'x': 1}}
        deep_merge(base, {'a': {'x': 2}})
        assert base == {'a': {'x': 1}}


class TestLoadConfig:

    def test_defaults_only(self, no_env_file):
        config = load_config(env_file=no_env_file)

        assert config['volatility']['atr_period'] == 14
        assert config['cache']['price_ttl_minutes'] == 30
        assert config['providers']['finnhub']['api_key'] is None
        assert DEFAULT_CONFIG['providers']['finnhub']['api_key'] == '${FINNHUB_API_KEY}'

    def test_file_merged_over_defaults(self, tmp_path, no_env_file):
        path = tmp_path / 'settings.yaml'
        path.write_text("volatility:\n  multiplier: 3.0\nbatch:\n  max_workers: 8\n")

        config = load_config(str(path), env_file=no_env_file)

        assert config['volatility']['multiplier'] == 3.0
        assert config['volatility']['atr_period'] == 14
        assert config['batch']['max_workers'] == 8

    def test_api_key_from_environment(self, monkeypatch, no_env_file):
        monkeypatch.setenv('FINNHUB_API_KEY', 'fh-secret')

        config = load_config(env_file=no_env_file)

        assert config['providers']['finnhub']['api_key'] == 'fh-secret'
        assert config['providers']['twelvedata']['api_key'] is None

    def test_api_key_from_env_file(self, tmp_path):
        env_file = tmp_path / '.env'
        env_file.write_text("TWELVE_DATA_API_KEY=td-secret\n")

        config = load_config(env_file=str(env_file))

        assert config['providers']['twelvedata']['api_key'] == 'td-secret'

    def test_empty_key_falls_back_to_environment(self, tmp_path, monkeypatch, no_env_file):
        monkeypatch.setenv('ALPHA_VANTAGE_API_KEY', 'av-secret')
        path = tmp_path / 'settings.yaml'
        path.write_text("providers:\n  alphavantage:\n    api_key: ''\n")

        config = load_config(str(path), env_file=no_env_file)

        assert config['providers']['alphavantage']['api_key'] == 'av-secret'

    def test_not_a_mapping(self, tmp_path, no_env_file):
        path = tmp_path / 'settings.yaml'
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            load_config(str(path), env_file=no_env_file)

    def test_missing_file(self, tmp_path, no_env_file):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / 'nope.yaml'), env_file=no_env_file)


def test_setup_logging_creates_log_dir(tmp_path):
    log_dir = tmp_path / 'logs'
    setup_logging({'logging': {'level': 'DEBUG', 'log_dir': str(log_dir)}})
    assert log_dir.is_dir()
