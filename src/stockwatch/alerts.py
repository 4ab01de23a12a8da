"""
Alert evaluation for watchlist runs.

Decides whether a volatility stop warrants a notification and renders the
message text. Delivery (push, WhatsApp, SMS, e-mail) belongs to the caller.
"""
import logging
from enum import Enum
from typing import Optional

from .formatters import format_percentage, format_price
from .models import VolatilityStop

logger = logging.getLogger(__name__)

HIGH_VOLATILITY_PCT = 10.0
APPROACHING_STOP_PCT = 5.0


class AlertCondition(str, Enum):
    STOP_TRIGGERED = 'STOP_TRIGGERED'      # price at or below stop
    APPROACHING_STOP = 'APPROACHING_STOP'  # within approaching_pct of stop
    HIGH_VOLATILITY = 'HIGH_VOLATILITY'    # stop distance above high_volatility_pct


def evaluate_alert(
    current_price: float,
    volatility_stop: VolatilityStop,
    high_volatility_pct: float = HIGH_VOLATILITY_PCT,
    approaching_pct: float = APPROACHING_STOP_PCT
) -> Optional[AlertCondition]:
    """
    First match wins:
        price <= stop                          -> STOP_TRIGGERED
        (price - stop) / price < approaching   -> APPROACHING_STOP
        stop distance > high_volatility_pct    -> HIGH_VOLATILITY

    Returns:
        AlertCondition, or None when no alert is needed
    """
    stop_loss = volatility_stop.stop_loss

    if current_price <= stop_loss:
        return AlertCondition.STOP_TRIGGERED

    distance_to_stop = (current_price - stop_loss) / current_price * 100
    if distance_to_stop < approaching_pct:
        return AlertCondition.APPROACHING_STOP

    if volatility_stop.stop_loss_percentage > high_volatility_pct:
        return AlertCondition.HIGH_VOLATILITY

    return None


def build_alert_message(
    symbol: str,
    current_price: float,
    volatility_stop: VolatilityStop,
    condition: AlertCondition
) -> str:
    price = format_price(current_price, symbol)
    stop = format_price(volatility_stop.stop_loss, symbol)

    if condition == AlertCondition.STOP_TRIGGERED:
        return f"🚨 STOP LOSS TRIGGERED for {symbol}! Price ({price}) hit stop at {stop}"
    if condition == AlertCondition.APPROACHING_STOP:
        return f"⚠️ {symbol} approaching stop loss! Price: {price}, Stop: {stop}"
    if condition == AlertCondition.HIGH_VOLATILITY:
        return (f"📊 High volatility detected for {symbol}! "
                f"Stop is {format_percentage(volatility_stop.stop_loss_percentage)} away at {stop}")
    return f"📈 Alert for {symbol}: Current {price}, Stop {stop}"
