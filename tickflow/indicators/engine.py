"""Incremental indicator engine.

Maintains EMA(fast), EMA(slow), Wilder RSI and Wilder ATR per
(symbol, timeframe). Updated once per closed bar, O(1) per update; the
in-progress bar never touches indicator state.

Seeding rule (the only one used anywhere in this package):
- EMA:  simple average of the first ``period`` closes, then
        ema = close * k + ema * (1 - k), k = 2 / (period + 1)
- RSI:  simple average of the first ``period`` gains/losses, then
        avg = (avg * (period - 1) + x) / period
- ATR:  simple average of the first ``period`` true ranges, then
        atr = (atr * (period - 1) + tr) / period

True range needs a previous close, so the first bar contributes none.
"""

import logging
import math

from tickflow.models import Bar, IndicatorSnapshot, IndicatorState, InvariantViolation

logger = logging.getLogger(__name__)


def rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    """RSI from Wilder averages. Defined as 100 when there are no losses."""
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def true_range(high: float, low: float, prev_close: float) -> float:
    """TR = max(high - low, |high - prev_close|, |low - prev_close|)."""
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


class IndicatorEngine:
    """Calculator for all streaming indicators needed by the strategy."""

    def __init__(
        self,
        ema_fast_period: int = 5,
        ema_slow_period: int = 15,
        rsi_period: int = 14,
        atr_period: int = 10,
        min_atr: float = 0.00001,
    ):
        for name, period in (
            ("ema_fast_period", ema_fast_period),
            ("ema_slow_period", ema_slow_period),
            ("rsi_period", rsi_period),
            ("atr_period", atr_period),
        ):
            if period < 1:
                raise ValueError(f"{name} must be >= 1, got {period}")
        # The fast EMA seeds from the shared close sum, so it must seed first
        if ema_fast_period >= ema_slow_period:
            raise ValueError(
                f"ema_fast_period ({ema_fast_period}) must be smaller than "
                f"ema_slow_period ({ema_slow_period})"
            )

        self.ema_fast_period = ema_fast_period
        self.ema_slow_period = ema_slow_period
        self.rsi_period = rsi_period
        self.atr_period = atr_period
        self.min_atr = min_atr

        self._k_fast = 2.0 / (ema_fast_period + 1)
        self._k_slow = 2.0 / (ema_slow_period + 1)

        self._states: dict[tuple[str, str], IndicatorState] = {}
        self._snapshots: dict[tuple[str, str], IndicatorSnapshot] = {}

    def get_state(self, symbol: str, timeframe: str) -> IndicatorState:
        """Get or create the state for a (symbol, timeframe) pair."""
        key = (symbol, timeframe)
        state = self._states.get(key)
        if state is None:
            state = IndicatorState()
            self._states[key] = state
        return state

    def get_snapshot(self, symbol: str, timeframe: str) -> IndicatorSnapshot | None:
        """Latest snapshot, or None if no bar has closed yet."""
        return self._snapshots.get((symbol, timeframe))

    def floored_atr(self, atr: float | None) -> float:
        """Apply the MIN_ATR floor. Unseeded ATR floors to MIN_ATR."""
        if atr is None:
            return self.min_atr
        return max(atr, self.min_atr)

    def update(self, bar: Bar) -> IndicatorSnapshot:
        """Fold one closed bar into the state for its (symbol, timeframe).

        Raises:
            InvariantViolation: If the bar is still open or carries
                non-finite prices, or the ATR would turn negative.
        """
        if not bar.is_closed:
            raise InvariantViolation(
                f"Indicator update from open bar {bar.symbol} {bar.timeframe} @ {bar.period_start}"
            )
        if not all(math.isfinite(v) for v in (bar.high, bar.low, bar.close)):
            raise InvariantViolation(
                f"Non-finite bar {bar.symbol} {bar.timeframe} @ {bar.period_start}"
            )

        state = self.get_state(bar.symbol, bar.timeframe)
        close = bar.close
        state.bars += 1

        self._update_ema(state, close)
        if state.prev_close is not None:
            self._update_rsi(state, close - state.prev_close)
            self._update_atr(state, true_range(bar.high, bar.low, state.prev_close))
        state.prev_close = close

        rsi = None
        if state.avg_gain is not None:
            rsi = rsi_from_averages(state.avg_gain, state.avg_loss)

        snapshot = IndicatorSnapshot(
            symbol=bar.symbol,
            timeframe=bar.timeframe,
            timestamp_ms=bar.period_start,
            close=close,
            bars=state.bars,
            ema_fast=state.ema_fast,
            ema_slow=state.ema_slow,
            rsi=rsi,
            atr=state.atr,
        )
        self._snapshots[(bar.symbol, bar.timeframe)] = snapshot
        return snapshot

    def _update_ema(self, state: IndicatorState, close: float) -> None:
        if state.ema_slow is None:
            state.close_sum += close

        if state.ema_fast is not None:
            state.ema_fast = close * self._k_fast + state.ema_fast * (1 - self._k_fast)
        elif state.bars == self.ema_fast_period:
            state.ema_fast = state.close_sum / self.ema_fast_period

        if state.ema_slow is not None:
            state.ema_slow = close * self._k_slow + state.ema_slow * (1 - self._k_slow)
        elif state.bars == self.ema_slow_period:
            state.ema_slow = state.close_sum / self.ema_slow_period

    def _update_rsi(self, state: IndicatorState, delta: float) -> None:
        gain = max(delta, 0.0)
        loss = max(-delta, 0.0)
        period = self.rsi_period

        if state.avg_gain is not None:
            state.avg_gain = (state.avg_gain * (period - 1) + gain) / period
            state.avg_loss = (state.avg_loss * (period - 1) + loss) / period
            return

        state.gain_sum += gain
        state.loss_sum += loss
        state.deltas += 1
        if state.deltas == period:
            state.avg_gain = state.gain_sum / period
            state.avg_loss = state.loss_sum / period

    def _update_atr(self, state: IndicatorState, tr: float) -> None:
        period = self.atr_period

        if state.atr is not None:
            state.atr = (state.atr * (period - 1) + tr) / period
        else:
            state.tr_sum += tr
            state.trs += 1
            if state.trs == period:
                state.atr = state.tr_sum / period

        if state.atr is not None and state.atr < 0:
            raise InvariantViolation(f"Negative ATR {state.atr}")

    def reset(self, symbol: str | None = None) -> None:
        """Drop indicator state for one symbol, or all if None."""
        if symbol is None:
            self._states.clear()
            self._snapshots.clear()
            return
        for key in [k for k in self._states if k[0] == symbol]:
            del self._states[key]
            self._snapshots.pop(key, None)
