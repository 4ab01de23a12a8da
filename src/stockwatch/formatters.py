"""
Presentation helpers: rounding of result objects, currency-aware price
strings, percentages. Calculators return raw floats; rounding happens here.
"""
import dataclasses
from typing import Any, Dict, Optional

import pandas as pd

INDIAN_SUFFIXES = ('.NS', '.NSE', '.BO', '.BSE')


def round_result(obj: Any, decimals: int = 2) -> Any:
    """
    Rounded copy of a result: floats inside dataclasses, lists, tuples and
    dicts are rounded to `decimals`; everything else is returned unchanged.
    """
    if isinstance(obj, float):
        return round(obj, decimals)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.replace(obj, **{
            f.name: round_result(getattr(obj, f.name), decimals)
            for f in dataclasses.fields(obj) if f.init
        })
    if isinstance(obj, list):
        return [round_result(item, decimals) for item in obj]
    if isinstance(obj, tuple):
        return tuple(round_result(item, decimals) for item in obj)
    if isinstance(obj, dict):
        return {key: round_result(value, decimals) for key, value in obj.items()}
    return obj


def to_dict(obj: Any) -> Any:
    """JSON-ready view of a result dataclass (enums serialize as their str value)."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, dict):
        return {key: to_dict(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_dict(item) for item in obj]
    return obj


def is_indian_symbol(symbol: str) -> bool:
    return symbol.strip().upper().endswith(INDIAN_SUFFIXES)


def currency_prefix(symbol: str) -> str:
    return "₹" if is_indian_symbol(symbol) else "$"


def _as_number(value: Any) -> Optional[float]:
    """float(value), or None for missing, NaN or non-numeric input."""
    if value is None:
        return None
    try:
        number = float(value)
    except (ValueError, TypeError):
        return None
    return None if pd.isna(number) else number


def format_price(value: Optional[float], symbol: str, decimals: int = 2) -> str:
    """₹ for .NS/.NSE/.BO/.BSE symbols ("₹1234.50"), $ otherwise ("$189.25"), "N/A" if missing."""
    number = _as_number(value)
    if number is None:
        return "N/A"
    return f"{currency_prefix(symbol)}{number:.{decimals}f}"


def format_percentage(value: Optional[float], decimals: int = 2, include_sign: bool = False) -> str:
    """Value already in percent: 5.234 -> "5.23%", "+5.23%" with include_sign."""
    number = _as_number(value)
    if number is None:
        return "N/A"
    return f"{number:+.{decimals}f}%" if include_sign else f"{number:.{decimals}f}%"


def summarize(result: Any, decimals: int = 2) -> Dict[str, Any]:
    """Rounded, JSON-ready dict of a result object."""
    return to_dict(round_result(result, decimals))
