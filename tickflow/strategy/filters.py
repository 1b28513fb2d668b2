"""Bar-level qualification filters."""

from typing import Sequence

from tickflow.models import Bar

FLAT_LOOKBACK = 3


def is_flat_market(closes: Sequence[float], atr: float, flat_factor: float) -> bool:
    """True when the range of the last 3 closes is below ``atr * flat_factor``.

    Fewer than 3 closes is never flat.
    """
    if len(closes) < FLAT_LOOKBACK:
        return False
    recent = closes[-FLAT_LOOKBACK:]
    return (max(recent) - min(recent)) < atr * flat_factor


def is_bullish_engulfing(prev: Bar, last: Bar) -> bool:
    return last.close > last.open and last.open < prev.close and last.close > prev.open


def is_bearish_engulfing(prev: Bar, last: Bar) -> bool:
    return last.close < last.open and last.open > prev.close and last.close < prev.open


def trend_agrees(buy: bool, trend_close: float | None, trend_ema_slow: float | None) -> bool:
    """Higher-timeframe filter: close on the correct side of its slow EMA.

    An unseeded trend timeframe does not block.
    """
    if trend_close is None or trend_ema_slow is None:
        return True
    if buy:
        return trend_close >= trend_ema_slow
    return trend_close <= trend_ema_slow
