"""Tests for the confirmation / debounce state machine."""

import pytest

from tickflow.models import Action, IndicatorSnapshot
from tickflow.strategy import BarConditions, ConfirmationStateMachine, CrossoverTracker

UP = (100.5, 100.0)
DOWN = (99.5, 100.0)
FLAT = (100.001, 100.0)

_DEFAULT_RSI = {UP: 70.0, DOWN: 30.0, FLAT: 50.0}


def _make_machine(**overrides) -> ConfirmationStateMachine:
    params = dict(
        confirm_set=3,
        confirm_flip=3,
        min_hold_ms=0,
        cooldown_ms=0,
        rsi_buy_threshold=60.0,
        rsi_sell_threshold=40.0,
    )
    params.update(overrides)
    tracker = CrossoverTracker(min_gap_ratio=0.001, capacity=5)
    return ConfirmationStateMachine(tracker, **params)


def _bar(sm: ConfirmationStateMachine, kind, ts: int, rsi: float | None = None, **flags):
    """Close one bar of the given EMA relationship and evaluate it."""
    fast, slow = kind
    snapshot = IndicatorSnapshot(
        symbol="X",
        timeframe="10s",
        timestamp_ms=ts,
        close=100.0,
        bars=30,
        ema_fast=fast,
        ema_slow=slow,
        rsi=_DEFAULT_RSI[kind] if rsi is None else rsi,
        atr=1.0,
    )
    record = sm.tracker.record("X", snapshot, ts)
    conditions = BarConditions(crossover=record, rsi=snapshot.rsi, **flags)
    return sm.evaluate("X", ts, conditions)


def _bars(sm, kinds, start=0, step=10_000, **kwargs):
    return [_bar(sm, kind, start + i * step, **kwargs) for i, kind in enumerate(kinds)]


class TestInitialTransition:
    """NONE -> BUY / SELL."""

    def test_buy_after_confirm_set_bars(self):
        sm = _make_machine()
        assert _bars(sm, [UP, UP, UP]) == [None, None, Action.BUY]

        state = sm.get_state("X")
        assert state.held_action == Action.BUY
        assert state.held_since == 20_000
        assert state.last_signal_at == 20_000
        assert state.candidate_count == {Action.BUY: 0, Action.SELL: 0}

    def test_sell_after_confirm_set_bars(self):
        sm = _make_machine()
        assert _bars(sm, [DOWN, DOWN, DOWN]) == [None, None, Action.SELL]

    def test_confirm_set_of_one(self):
        sm = _make_machine(confirm_set=1)
        assert _bar(sm, UP, 0) == Action.BUY

    def test_non_qualifying_bar_resets(self):
        sm = _make_machine()
        results = _bars(sm, [UP, UP, FLAT, UP, UP, UP])
        assert results == [None] * 5 + [Action.BUY]

    def test_counts_track_qualifying_bars(self):
        sm = _make_machine()
        _bars(sm, [UP, UP])
        assert sm.get_state("X").candidate_count[Action.BUY] == 2

        _bar(sm, DOWN, 20_000)
        counts = sm.get_state("X").candidate_count
        assert counts == {Action.BUY: 0, Action.SELL: 1}

    def test_holding_direction_does_not_repeat(self):
        sm = _make_machine()
        results = _bars(sm, [UP] * 10)
        assert results.count(Action.BUY) == 1


class TestQualification:
    """Bars that must never qualify."""

    def test_weak_rsi_blocks_buy(self):
        sm = _make_machine()
        assert _bars(sm, [UP] * 5, rsi=55.0) == [None] * 5
        assert sm.get_state("X").candidate_count[Action.BUY] == 0

    def test_weak_rsi_blocks_sell(self):
        sm = _make_machine()
        assert _bars(sm, [DOWN] * 5, rsi=45.0) == [None] * 5

    def test_threshold_is_inclusive(self):
        sm = _make_machine()
        assert _bars(sm, [UP] * 3, rsi=60.0)[-1] == Action.BUY

    def test_flat_market_never_qualifies(self):
        sm = _make_machine()
        assert _bars(sm, [UP] * 5, flat=True) == [None] * 5
        assert sm.get_state("X").held_action == Action.NONE

    def test_trend_disagreement_blocks(self):
        sm = _make_machine()
        assert _bars(sm, [UP] * 5, trend_buy_ok=False) == [None] * 5
        # The other direction's trend flag is irrelevant
        assert _bars(sm, [UP] * 3, start=50_000, trend_sell_ok=False)[-1] == Action.BUY

    def test_pattern_requirement(self):
        sm = _make_machine()
        assert _bars(sm, [DOWN] * 5, pattern_sell_ok=False) == [None] * 5

    def test_flat_crossover_never_qualifies(self):
        sm = _make_machine()
        assert _bars(sm, [FLAT] * 5, rsi=80.0) == [None] * 5


class TestFlip:
    """BUY <-> SELL transitions."""

    def test_flip_after_confirm_flip_bars(self):
        sm = _make_machine(confirm_flip=2)
        _bars(sm, [UP, UP, UP])
        results = _bars(sm, [DOWN, DOWN], start=30_000)
        assert results == [None, Action.SELL]
        assert sm.get_state("X").held_since == 40_000

    def test_flip_waits_for_min_hold(self):
        sm = _make_machine(min_hold_ms=100_000)
        _bars(sm, [UP, UP, UP])  # BUY @ 20_000

        fired_at = None
        for ts in range(30_000, 160_000, 10_000):
            if _bar(sm, DOWN, ts) == Action.SELL:
                fired_at = ts
                break
        assert fired_at == 120_000

    def test_alternating_bars_never_flip(self):
        sm = _make_machine()
        _bars(sm, [UP, UP, UP])
        results = _bars(sm, [DOWN, UP] * 10, start=30_000)
        assert results == [None] * 20
        assert sm.get_state("X").held_action == Action.BUY

    def test_alternating_bars_never_set(self):
        sm = _make_machine()
        assert _bars(sm, [UP, DOWN] * 10) == [None] * 20
        assert sm.get_state("X").held_action == Action.NONE


class TestCooldown:
    """Deferred transitions."""

    def test_deferred_transition_keeps_counts(self):
        sm = _make_machine(cooldown_ms=100_000)
        _bars(sm, [UP, UP, UP])  # BUY @ 20_000

        results = _bars(sm, [DOWN, DOWN, DOWN, DOWN], start=30_000)
        assert results == [None] * 4
        assert sm.get_state("X").candidate_count[Action.SELL] == 4
        assert sm.in_cooldown("X", 60_000)
        assert sm.eligible_transition("X", 60_000) == Action.SELL

    def test_sweep_fires_after_cooldown(self):
        sm = _make_machine(cooldown_ms=100_000)
        _bars(sm, [UP, UP, UP])
        _bars(sm, [DOWN, DOWN, DOWN], start=30_000)

        assert sm.evaluate("X", 119_999) is None
        assert sm.evaluate("X", 120_000) == Action.SELL

        state = sm.get_state("X")
        assert state.held_action == Action.SELL
        assert state.last_signal_at == 120_000
        assert state.candidate_count[Action.SELL] == 0

    def test_bar_close_fires_after_cooldown(self):
        sm = _make_machine(cooldown_ms=60_000)
        _bars(sm, [UP, UP, UP])  # BUY @ 20_000
        results = _bars(sm, [DOWN] * 6, start=30_000)
        # 30k..70k are inside the cooldown, 80k is the first bar past it
        assert results == [None] * 5 + [Action.SELL]

    def test_interrupted_candidate_is_not_fired_by_sweep(self):
        sm = _make_machine(cooldown_ms=100_000)
        _bars(sm, [UP, UP, UP])
        _bars(sm, [DOWN, DOWN, DOWN, FLAT], start=30_000)
        assert sm.evaluate("X", 200_000) is None

    def test_emissions_respect_cooldown(self):
        sm = _make_machine(cooldown_ms=50_000, confirm_flip=1)
        kinds = ([UP] * 3 + [DOWN] * 3) * 6
        fired = []
        for i, kind in enumerate(kinds):
            ts = i * 10_000
            if _bar(sm, kind, ts) is not None:
                fired.append(ts)

        assert len(fired) >= 2
        for earlier, later in zip(fired, fired[1:]):
            assert later - earlier >= 50_000


class TestMachineState:
    def test_sweep_on_fresh_symbol(self):
        sm = _make_machine()
        assert sm.evaluate("X", 0) is None
        assert sm.symbols == ["X"]

    def test_symbols_independent(self):
        sm = _make_machine()
        _bars(sm, [UP, UP, UP])
        assert sm.get_state("Y").held_action == Action.NONE

    def test_reset(self):
        sm = _make_machine()
        _bars(sm, [UP, UP, UP])
        sm.reset("X")
        assert sm.get_state("X").held_action == Action.NONE

    @pytest.mark.parametrize("held", [Action.BUY, Action.SELL])
    def test_no_eligible_target_without_candidates(self, held):
        sm = _make_machine()
        sm.get_state("X").held_action = held
        assert sm.eligible_transition("X", 0) is None

    def test_pending_does_not_commit(self):
        sm = _make_machine()
        _bars(sm, [UP, UP])
        fast, slow = UP
        snapshot = IndicatorSnapshot("X", "10s", 20_000, 100.0, 30, fast, slow, 70.0, 1.0)
        record = sm.tracker.record("X", snapshot, 20_000)

        assert sm.pending("X", 20_000, BarConditions(crossover=record, rsi=70.0)) == Action.BUY
        assert sm.get_state("X").held_action == Action.NONE

        sm.commit("X", Action.BUY, 20_000)
        state = sm.get_state("X")
        assert state.held_action == Action.BUY
        assert state.last_signal_at == 20_000
