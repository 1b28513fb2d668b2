"""Signal engine: tick in, signals out.

Wires the pipeline for every symbol:

    tick -> CandleAggregator.ingest
         -> (bar close) IndicatorEngine.update
         -> CrossoverTracker.record
         -> ConfirmationStateMachine.pending
         -> (transition) RiskCalculator.compute -> Signal -> commit
         -> (lock released) callbacks

Each tick runs to completion under its symbol's lock, so different
symbols may be fed from different threads while one symbol's state is
never mutated concurrently. The engine holds no timers and performs no
I/O; periodic re-evaluation is an external driver calling ``evaluate``.
"""

import logging
import math
import threading
from collections import deque
from typing import Callable

from tickflow.aggregator import CandleAggregator
from tickflow.indicators import IndicatorEngine
from tickflow.models import (
    Action,
    CrossoverRecord,
    EngineConfig,
    IndicatorSnapshot,
    Signal,
    SymbolState,
)
from tickflow.spike import SpikeDetector, SpikeEvent
from tickflow.strategy import (
    BarConditions,
    ConfirmationStateMachine,
    CrossoverTracker,
    RiskCalculator,
    is_bearish_engulfing,
    is_bullish_engulfing,
    is_flat_market,
    trend_agrees,
)
from tickflow.strategy.filters import FLAT_LOOKBACK

logger = logging.getLogger(__name__)

SignalCallback = Callable[[Signal], None]
SpikeCallback = Callable[[SpikeEvent], None]


class SignalEngine:
    """Converts a tick stream into confirmed, rate-limited signals.

    Usage:
        engine = SignalEngine(EngineConfig())
        engine.on_signal(print)
        for symbol, price, ts in feed:
            engine.ingest_tick(symbol, price, ts)
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        cfg = self.config

        self.eval_timeframe = cfg.eval_timeframe
        self.trend_timeframe = cfg.trend_timeframe

        self.aggregator = CandleAggregator(cfg.timeframes, max_history=cfg.max_history)
        self.indicators = IndicatorEngine(
            ema_fast_period=cfg.ema_fast_period,
            ema_slow_period=cfg.ema_slow_period,
            rsi_period=cfg.rsi_period,
            atr_period=cfg.atr_period,
            min_atr=cfg.min_atr,
        )
        self.tracker = CrossoverTracker(
            min_gap_ratio=cfg.min_gap_ratio, capacity=cfg.confirm_window
        )
        self.state_machine = ConfirmationStateMachine(
            self.tracker,
            confirm_set=cfg.confirm_set,
            confirm_flip=cfg.confirm_flip,
            min_hold_ms=cfg.min_hold_ms,
            cooldown_ms=cfg.cooldown_ms,
            rsi_buy_threshold=cfg.rsi_buy_threshold,
            rsi_sell_threshold=cfg.rsi_sell_threshold,
        )
        self.risk = RiskCalculator(
            sl_atr_mult=cfg.sl_atr_mult,
            tp_atr_mult=cfg.tp_atr_mult,
            min_atr=cfg.min_atr,
        )
        self.spikes = SpikeDetector(cfg.spike_thresholds)

        self._callbacks: list[SignalCallback] = []
        self._spike_callbacks: list[SpikeCallback] = []

        self._recent: deque[Signal] = deque(maxlen=cfg.max_signals_stored)
        self._recent_lock = threading.Lock()

        # One lock per symbol, created lazily under _locks_guard
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        self._last_tick_ms: dict[str, int] = {}
        self._dropped: dict[str, int] = {}

        logger.info(
            f"SignalEngine initialized: eval={cfg.eval_timeframe} trend={cfg.trend_timeframe} "
            f"EMA({cfg.ema_fast_period},{cfg.ema_slow_period}) RSI({cfg.rsi_period}) "
            f"ATR({cfg.atr_period}) confirm={cfg.confirm_set}/{cfg.confirm_flip} "
            f"cooldown={cfg.cooldown_ms}ms hold={cfg.min_hold_ms}ms"
        )

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def on_signal(self, callback: SignalCallback) -> None:
        """Register callback for new signals.

        Note: Duplicate callbacks are ignored.
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def off_signal(self, callback: SignalCallback) -> None:
        """Unregister callback for new signals."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def on_spike(self, callback: SpikeCallback) -> None:
        """Register callback for detected price spikes."""
        if callback not in self._spike_callbacks:
            self._spike_callbacks.append(callback)

    def off_spike(self, callback: SpikeCallback) -> None:
        if callback in self._spike_callbacks:
            self._spike_callbacks.remove(callback)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def ingest_tick(self, symbol: str, price: float, timestamp_ms: int) -> list[Signal]:
        """Process one tick to completion.

        Ticks older than the symbol's previous tick, non-integer timestamps
        and non-finite or non-positive prices are dropped with a warning.

        Callbacks run after the symbol's lock is released, so they may call
        back into the engine.

        Returns:
            Signals emitted by this tick (at most one per closed eval bar)
        """
        with self._lock_for(symbol):
            spike, signals = self._process_tick(symbol, price, timestamp_ms)

        if spike is not None:
            self._dispatch_spike(spike)
        for signal in signals:
            self._dispatch(signal)
        return signals

    def evaluate(self, symbol: str, now_ms: int) -> Signal | None:
        """Retry a deferred transition for one symbol.

        Entry point for an external periodic sweep. Candidate counts are
        not touched; a transition that was only blocked by cooldown fires
        with the indicator snapshot current now.
        """
        with self._lock_for(symbol):
            if symbol not in self._last_tick_ms:
                return None
            action = self.state_machine.pending(symbol, now_ms)
            if action is None:
                return None
            snapshot = self.indicators.get_snapshot(symbol, self.eval_timeframe)
            signal = self._emit(symbol, action, snapshot, now_ms)

        self._dispatch(signal)
        return signal

    def evaluate_all(self, now_ms: int) -> list[Signal]:
        """Sweep every known symbol."""
        signals = []
        for symbol in self.symbols:
            signal = self.evaluate(symbol, now_ms)
            if signal is not None:
                signals.append(signal)
        return signals

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _process_tick(
        self, symbol: str, price: float, timestamp_ms: int
    ) -> tuple[SpikeEvent | None, list[Signal]]:
        if not self._accept(symbol, price, timestamp_ms):
            return None, []

        spike = self.spikes.observe(symbol, price, timestamp_ms)

        closed = self.aggregator.ingest(symbol, price, timestamp_ms)
        if not closed:
            return spike, []

        # Update every timeframe first so the trend filter sees this tick's close
        updated = [(event, self.indicators.update(event.bar)) for event in closed]

        signals: list[Signal] = []
        for event, snapshot in updated:
            if event.timeframe != self.eval_timeframe:
                continue
            signal = self._on_eval_bar(symbol, snapshot, timestamp_ms)
            if signal is not None:
                signals.append(signal)
        return spike, signals

    def _accept(self, symbol: str, price: float, timestamp_ms: int) -> bool:
        if isinstance(timestamp_ms, bool) or not isinstance(timestamp_ms, int):
            self._dropped[symbol] = self._dropped.get(symbol, 0) + 1
            logger.warning(
                f"Dropping tick for {symbol}: timestamp {timestamp_ms!r} is not integer ms"
            )
            return False

        if not math.isfinite(price) or price <= 0:
            self._dropped[symbol] = self._dropped.get(symbol, 0) + 1
            logger.warning(f"Dropping tick for {symbol}: invalid price {price}")
            return False

        last = self._last_tick_ms.get(symbol)
        if last is not None and timestamp_ms < last:
            self._dropped[symbol] = self._dropped.get(symbol, 0) + 1
            logger.warning(
                f"Dropping out-of-order tick for {symbol}: {timestamp_ms} < {last}"
            )
            return False

        if last is None:
            self.state_machine.get_state(symbol)
        self._last_tick_ms[symbol] = timestamp_ms
        return True

    def _on_eval_bar(
        self, symbol: str, snapshot: IndicatorSnapshot, now_ms: int
    ) -> Signal | None:
        if snapshot.ema_fast is None or snapshot.ema_slow is None:
            return None

        record = self.tracker.record(symbol, snapshot, snapshot.timestamp_ms)

        # Not enough history: withhold evaluation, counters untouched
        if not snapshot.is_ready:
            return None

        conditions = self._conditions(symbol, snapshot, record)
        action = self.state_machine.pending(symbol, now_ms, conditions)
        if action is None:
            return None
        return self._emit(symbol, action, snapshot, now_ms)

    def _conditions(
        self, symbol: str, snapshot: IndicatorSnapshot, record: CrossoverRecord
    ) -> BarConditions:
        cfg = self.config
        history = self.aggregator.get_history(symbol, self.eval_timeframe)
        recent = history.tail(FLAT_LOOKBACK)

        atr = self.indicators.floored_atr(snapshot.atr)
        flat = is_flat_market([b.close for b in recent], atr, cfg.flat_factor)

        trend_buy_ok = trend_sell_ok = True
        if self.trend_timeframe is not None:
            trend = self.indicators.get_snapshot(symbol, self.trend_timeframe)
            if trend is not None:
                trend_buy_ok = trend_agrees(True, trend.close, trend.ema_slow)
                trend_sell_ok = trend_agrees(False, trend.close, trend.ema_slow)

        pattern_buy_ok = pattern_sell_ok = True
        if cfg.require_engulfing:
            if len(recent) >= 2:
                prev, last = recent[-2], recent[-1]
                pattern_buy_ok = is_bullish_engulfing(prev, last)
                pattern_sell_ok = is_bearish_engulfing(prev, last)
            else:
                pattern_buy_ok = pattern_sell_ok = False

        return BarConditions(
            crossover=record,
            rsi=snapshot.rsi,
            flat=flat,
            trend_buy_ok=trend_buy_ok,
            trend_sell_ok=trend_sell_ok,
            pattern_buy_ok=pattern_buy_ok,
            pattern_sell_ok=pattern_sell_ok,
        )

    def _emit(
        self, symbol: str, action: Action, snapshot: IndicatorSnapshot, now_ms: int
    ) -> Signal:
        entry = snapshot.close
        levels = self.risk.compute(action, entry, snapshot.atr)
        signal = Signal(
            symbol=symbol,
            action=action,
            entry_price=entry,
            stop_loss=levels.stop_loss,
            take_profit=levels.take_profit,
            atr=levels.atr,
            timestamp_ms=now_ms,
            ema_fast=snapshot.ema_fast,
            ema_slow=snapshot.ema_slow,
            rsi=snapshot.rsi,
        )
        # Held action changes only once the Signal exists
        self.state_machine.commit(symbol, action, now_ms)
        with self._recent_lock:
            self._recent.appendleft(signal)

        logger.info(
            f"{action.value} {symbol} @ {entry} SL={levels.stop_loss} "
            f"TP={levels.take_profit} ATR={levels.atr} RSI={snapshot.rsi}"
        )
        return signal

    def _dispatch(self, signal: Signal) -> None:
        for callback in list(self._callbacks):
            try:
                callback(signal)
            except Exception as e:
                logger.error(f"Signal callback error for {signal.id}: {e}")

    def _dispatch_spike(self, spike: SpikeEvent) -> None:
        for callback in list(self._spike_callbacks):
            try:
                callback(spike)
            except Exception as e:
                logger.error(f"Spike callback error for {spike.symbol}: {e}")

    def _lock_for(self, symbol: str) -> threading.Lock:
        lock = self._locks.get(symbol)
        if lock is None:
            with self._locks_guard:
                lock = self._locks.setdefault(symbol, threading.Lock())
        return lock

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def symbols(self) -> list[str]:
        """Symbols seen so far."""
        return list(self._last_tick_ms)

    @property
    def recent_signals(self) -> list[Signal]:
        """Latest signals, newest first."""
        with self._recent_lock:
            return list(self._recent)

    def get_symbol_state(self, symbol: str) -> SymbolState:
        return self.state_machine.get_state(symbol)

    def dropped_ticks(self, symbol: str) -> int:
        return self._dropped.get(symbol, 0)

    def reset(self) -> None:
        """Clear all per-symbol state. Callbacks stay registered.

        Not meant to run concurrently with ingest_tick.
        """
        with self._locks_guard:
            self.aggregator.reset()
            self.indicators.reset()
            self.tracker.reset()
            self.state_machine.reset()
            self.spikes.reset()
            self._last_tick_ms.clear()
            self._dropped.clear()
            with self._recent_lock:
                self._recent.clear()
