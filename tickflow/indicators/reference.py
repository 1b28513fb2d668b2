"""Batch indicator calculators (NumPy).

Whole-series versions of the streaming indicators, using the same seeding
rule as IndicatorEngine. Meant for verification and offline analysis of
recorded bars; the tick path never calls these.

Every function returns an array the same length as its input, NaN where
the indicator is not seeded yet.
"""

from typing import Sequence

import numpy as np


def ema(values: Sequence[float], period: int) -> np.ndarray:
    """Calculate EMA seeded with the SMA of the first ``period`` values."""
    arr = np.asarray(values, dtype=np.float64)
    result = np.full_like(arr, np.nan)
    if len(arr) < period:
        return result

    k = 2.0 / (period + 1)
    result[period - 1] = arr[:period].sum() / period
    for i in range(period, len(arr)):
        result[i] = arr[i] * k + result[i - 1] * (1 - k)
    return result


def rsi(values: Sequence[float], period: int = 14) -> np.ndarray:
    """Calculate Wilder RSI. 100 where the average loss is zero."""
    arr = np.asarray(values, dtype=np.float64)
    result = np.full_like(arr, np.nan)
    if len(arr) < period + 1:
        return result

    deltas = np.diff(arr)
    gains = np.maximum(deltas, 0.0)
    losses = np.maximum(-deltas, 0.0)

    avg_gain = gains[:period].sum() / period
    avg_loss = losses[:period].sum() / period
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result[i + 1] = _rsi_value(avg_gain, avg_loss)
    return result


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> np.ndarray:
    """True range per bar; NaN for the first bar (no previous close)."""
    h = np.asarray(highs, dtype=np.float64)
    l = np.asarray(lows, dtype=np.float64)
    c = np.asarray(closes, dtype=np.float64)
    result = np.full_like(c, np.nan)
    if len(c) < 2:
        return result

    prev = c[:-1]
    result[1:] = np.maximum.reduce(
        [h[1:] - l[1:], np.abs(h[1:] - prev), np.abs(l[1:] - prev)]
    )
    return result


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> np.ndarray:
    """Calculate Wilder ATR seeded with the mean of the first ``period`` TRs."""
    tr = true_range(highs, lows, closes)
    result = np.full_like(tr, np.nan)
    if len(tr) < period + 1:
        return result

    atr_value = tr[1 : period + 1].sum() / period
    result[period] = atr_value
    for i in range(period + 1, len(tr)):
        atr_value = (atr_value * (period - 1) + tr[i]) / period
        result[i] = atr_value
    return result
