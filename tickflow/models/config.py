"""Engine configuration models."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, model_validator

_TIMEFRAME_RE = re.compile(r"^(\d+)(ms|s|m|h|d)$")

_UNIT_MS = {
    "ms": 1,
    "s": 1_000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def timeframe_to_ms(timeframe: str) -> int:
    """Convert a timeframe name ("10s", "1m", "5m", "1h") to milliseconds.

    Raises:
        ValueError: If the name is malformed or the width is zero.
    """
    match = _TIMEFRAME_RE.match(timeframe)
    if match is None:
        raise ValueError(f"Unknown timeframe '{timeframe}'")
    width = int(match.group(1)) * _UNIT_MS[match.group(2)]
    if width <= 0:
        raise ValueError(f"Timeframe '{timeframe}' has zero width")
    return width


class EngineConfig(BaseModel):
    """Signal engine configuration parameters.

    All fields affect behavior; the engine holds no other tunables.
    """

    # Bar timeframes
    eval_timeframe: str = "10s"
    trend_timeframe: str | None = "1m"  # None disables the trend filter

    # Indicator periods
    ema_fast_period: int = Field(default=5, ge=1)
    ema_slow_period: int = Field(default=15, ge=2)
    rsi_period: int = Field(default=14, ge=1)
    atr_period: int = Field(default=10, ge=1)

    # Momentum thresholds
    rsi_buy_threshold: float = 60.0
    rsi_sell_threshold: float = 40.0

    # Confirmation / debounce
    confirm_set: int = Field(default=3, ge=1)
    confirm_flip: int = Field(default=3, ge=1)
    min_hold_ms: int = Field(default=60_000, ge=0)
    cooldown_ms: int = Field(default=60_000, ge=0)
    min_gap_ratio: float = Field(default=0.0001, ge=0)

    # Volatility
    min_atr: float = Field(default=0.00001, gt=0)
    flat_factor: float = Field(default=0.2, ge=0)

    # TP/SL multipliers (based on ATR)
    sl_atr_mult: float = Field(default=3.0, gt=0)
    tp_atr_mult: float = Field(default=6.0, gt=0)

    # Candle pattern confirmation (engulfing on the eval timeframe)
    require_engulfing: bool = False

    # Tick-to-tick jump thresholds in price points, per symbol
    spike_thresholds: dict[str, float] = Field(default_factory=dict)

    # Memory bounds
    max_history: int = Field(default=400, ge=3)
    max_signals_stored: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def _validate(self):
        if self.ema_fast_period >= self.ema_slow_period:
            raise ValueError(
                f"ema_fast_period ({self.ema_fast_period}) must be smaller than "
                f"ema_slow_period ({self.ema_slow_period})"
            )
        for name in ("rsi_buy_threshold", "rsi_sell_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be within [0, 100], got {value}")
        if self.rsi_sell_threshold >= self.rsi_buy_threshold:
            raise ValueError(
                "rsi_sell_threshold must be below rsi_buy_threshold"
            )
        eval_ms = timeframe_to_ms(self.eval_timeframe)
        if self.trend_timeframe is not None:
            if timeframe_to_ms(self.trend_timeframe) <= eval_ms:
                raise ValueError(
                    f"trend_timeframe '{self.trend_timeframe}' must be coarser than "
                    f"eval_timeframe '{self.eval_timeframe}'"
                )
        for symbol, threshold in self.spike_thresholds.items():
            if threshold <= 0:
                raise ValueError(f"spike threshold for {symbol} must be positive")
        return self

    @property
    def eval_interval_ms(self) -> int:
        return timeframe_to_ms(self.eval_timeframe)

    @property
    def timeframes(self) -> dict[str, int]:
        """All bucketed timeframes, name -> width in ms."""
        result = {self.eval_timeframe: self.eval_interval_ms}
        if self.trend_timeframe is not None:
            result[self.trend_timeframe] = timeframe_to_ms(self.trend_timeframe)
        return result

    @property
    def confirm_window(self) -> int:
        """Capacity of the per-symbol crossover window."""
        return max(self.confirm_set, self.confirm_flip) + 2

    @property
    def warmup_bars(self) -> int:
        """Closed eval bars needed before every indicator is seeded."""
        return max(self.ema_slow_period, self.rsi_period + 1, self.atr_period + 1)
