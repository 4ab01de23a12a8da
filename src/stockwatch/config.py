"""
Configuration loading and logging setup.

settings.yaml is merged over DEFAULT_CONFIG, so a partial file (or no file)
still yields every key. `${VAR}` / `$VAR` placeholders are expanded from the
environment after `.env` has been loaded.
"""
import os
import re
import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PATTERN = re.compile(r'\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)')

# Environment variables that fill in API keys left empty in the file
API_KEY_ENV = {
    'finnhub': 'FINNHUB_API_KEY',
    'twelvedata': 'TWELVE_DATA_API_KEY',
    'alphavantage': 'ALPHA_VANTAGE_API_KEY',
}

DEFAULT_CONFIG: Dict[str, Any] = {
    'providers': {
        # finnhub | twelvedata | alphavantage: route every US call to one provider
        'override': None,
        'finnhub': {
            'api_key': '${FINNHUB_API_KEY}',
            'rate_limit_per_minute': 60,
            'max_retries': 3,
            'timeout_seconds': 10,
            'backoff_base_seconds': 1.0,
        },
        'twelvedata': {
            'api_key': '${TWELVE_DATA_API_KEY}',
            'rate_limit_per_minute': 8,
            'max_retries': 3,
            'timeout_seconds': 15,
            'backoff_base_seconds': 8.0,
        },
        'alphavantage': {
            'api_key': '${ALPHA_VANTAGE_API_KEY}',
            'rate_limit_per_minute': 5,
            'max_retries': 2,
            'timeout_seconds': 15,
            'backoff_base_seconds': 12.0,
        },
        'yahoo': {
            'default_suffix': '.NS',
        },
    },
    'cache': {
        'price_ttl_minutes': 30,
        'historical_ttl_hours': 6,
        'recommendations_ttl_hours': 6,
    },
    'volatility': {
        'atr_period': 14,
        'multiplier': 2.0,
        'sell_above_pct': 10.0,
        'buy_below_pct': 3.0,
        'allow_buy_signal': True,
    },
    'dma': {
        'strategy': 'trend',
        'history_days': 250,
        'min_bars_for_padding': 170,
    },
    'batch': {
        'historical_days': 90,
        'api_delay_ms': 100,
        'max_stocks_per_batch': 50,
        'max_workers': 4,
        'skip_when_market_closed': False,
    },
    'alerts': {
        'high_volatility_pct': 10.0,
        'approaching_stop_pct': 5.0,
    },
    'logging': {
        'level': 'INFO',
        'log_dir': './logs',
        'log_file': 'stockwatch.log',
    },
}


def expand_env_vars(value: Any) -> Any:
    """Expand ${VAR} or $VAR in strings (recursively in dicts/lists). Unset vars are left as-is."""
    if isinstance(value, str):
        def replace(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))
        return ENV_PATTERN.sub(replace, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


def deep_merge(base: Dict, override: Dict) -> Dict:
    """Return a copy of `base` with `override` merged in, nested dicts merged key by key."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _resolve_api_keys(config: Dict) -> None:
    """Unexpanded placeholders mean 'not configured'."""
    providers = config.get('providers', {})
    for name, env_var in API_KEY_ENV.items():
        section = providers.get(name)
        if not isinstance(section, dict):
            continue
        api_key = section.get('api_key') or os.getenv(env_var)
        if isinstance(api_key, str) and api_key.startswith('$'):
            api_key = None
        section['api_key'] = api_key
        if api_key:
            logger.debug(f"✓ {name} API key configured: {api_key[:4]}...")
        else:
            logger.debug(f"{name} API key not configured ({env_var})")


def load_config(path: Optional[str] = None, env_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Load settings.

    Args:
        path: YAML file; None means built-in defaults only
        env_file: .env file to load first (default: search from the CWD)

    Raises:
        FileNotFoundError: `path` given but missing
        ValueError: the file is not a YAML mapping
    """
    load_dotenv(env_file)

    file_config = {}
    if path:
        with open(path, 'r') as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"Config file {path} must contain a mapping, got {type(file_config).__name__}")

    config = expand_env_vars(deep_merge(DEFAULT_CONFIG, file_config))
    _resolve_api_keys(config)
    return config


def setup_logging(config: Dict[str, Any]):
    """Configure root logging: file under logging.log_dir plus stderr."""
    log_config = config.get('logging', {})
    log_level = str(log_config.get('level', 'INFO')).upper()
    log_dir = log_config.get('log_dir', './logs')
    log_file = log_config.get('log_file', 'stockwatch.log')

    Path(log_dir).mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(f"{log_dir}/{log_file}"),
            logging.StreamHandler()
        ]
    )
