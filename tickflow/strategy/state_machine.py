"""Confirmation / debounce state machine.

One held action per symbol: NONE, BUY or SELL.

Qualification (per closed eval bar, per direction D):
- the bar's crossover record is D (gap ratio at or above the minimum)
- RSI >= buy threshold for BUY, <= sell threshold for SELL
- the trend timeframe agrees (when configured)
- the bar is not a flat-market bar
- the engulfing pattern agrees (when required)

A qualifying bar increments candidate_count[D] and zeroes the opposite
counter; a non-qualifying bar zeroes candidate_count[D].

Transitions:
- NONE -> D        candidate_count[D] >= confirm_set and the crossover
                   window is confirmed for D over confirm_set records
- D -> opposite    candidate_count[opp] >= confirm_flip, crossover
                   confirmed over confirm_flip records, and the held
                   action is at least min_hold_ms old
- Eligible transitions are deferred (counts kept) while the symbol is in
  cooldown; they fire on a later bar close or external sweep.
- Firing resets both counters and sets held_since = last_signal_at = now.
"""

import logging
from dataclasses import dataclass

from tickflow.models import Action, CrossoverRecord, SymbolState, direction_for
from tickflow.strategy.crossover import CrossoverTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BarConditions:
    """Everything the state machine needs to know about one closed bar."""

    crossover: CrossoverRecord
    rsi: float
    flat: bool = False
    trend_buy_ok: bool = True
    trend_sell_ok: bool = True
    pattern_buy_ok: bool = True
    pattern_sell_ok: bool = True


class ConfirmationStateMachine:
    """Turns per-bar conditions into rate-limited held-action transitions."""

    def __init__(
        self,
        tracker: CrossoverTracker,
        confirm_set: int = 3,
        confirm_flip: int = 3,
        min_hold_ms: int = 60_000,
        cooldown_ms: int = 60_000,
        rsi_buy_threshold: float = 60.0,
        rsi_sell_threshold: float = 40.0,
    ):
        self.tracker = tracker
        self.confirm_set = confirm_set
        self.confirm_flip = confirm_flip
        self.min_hold_ms = min_hold_ms
        self.cooldown_ms = cooldown_ms
        self.rsi_buy_threshold = rsi_buy_threshold
        self.rsi_sell_threshold = rsi_sell_threshold

        self._states: dict[str, SymbolState] = {}

    def get_state(self, symbol: str) -> SymbolState:
        """Get or create the SymbolState for a symbol."""
        state = self._states.get(symbol)
        if state is None:
            state = SymbolState(symbol=symbol)
            self._states[symbol] = state
        return state

    @property
    def symbols(self) -> list[str]:
        return list(self._states)

    # ------------------------------------------------------------------
    # Qualification
    # ------------------------------------------------------------------

    def qualifies(self, conditions: BarConditions, action: Action) -> bool:
        """Check whether a bar qualifies for ``action``."""
        if conditions.flat:
            return False
        if conditions.crossover.direction != direction_for(action):
            return False
        if action == Action.BUY:
            return (
                conditions.rsi >= self.rsi_buy_threshold
                and conditions.trend_buy_ok
                and conditions.pattern_buy_ok
            )
        return (
            conditions.rsi <= self.rsi_sell_threshold
            and conditions.trend_sell_ok
            and conditions.pattern_sell_ok
        )

    def record_bar(self, symbol: str, conditions: BarConditions) -> None:
        """Advance or reset the candidate counters for one closed bar."""
        state = self.get_state(symbol)
        for action in (Action.BUY, Action.SELL):
            if self.qualifies(conditions, action):
                state.candidate_count[action] += 1
                state.candidate_count[action.opposite] = 0
                # Directions are exclusive; at most one can qualify
                break
        else:
            state.reset_candidates()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def eligible_transition(self, symbol: str, now: int) -> Action | None:
        """Target action if a transition is eligible, cooldown aside."""
        state = self.get_state(symbol)
        counts = state.candidate_count

        if state.held_action == Action.NONE:
            for action in (Action.BUY, Action.SELL):
                if counts[action] >= self.confirm_set and self.tracker.confirmed(
                    symbol, direction_for(action), self.confirm_set
                ):
                    return action
            return None

        target = state.held_action.opposite
        if counts[target] < self.confirm_flip:
            return None
        if not self.tracker.confirmed(symbol, direction_for(target), self.confirm_flip):
            return None
        if state.held_since is not None and now - state.held_since < self.min_hold_ms:
            return None
        return target

    def in_cooldown(self, symbol: str, now: int) -> bool:
        state = self.get_state(symbol)
        return state.last_signal_at is not None and now - state.last_signal_at < self.cooldown_ms

    def evaluate(
        self, symbol: str, now: int, conditions: BarConditions | None = None
    ) -> Action | None:
        """Evaluate the symbol and commit a transition if one fires.

        Args:
            symbol: Symbol to evaluate
            now: Current time in Unix ms (tick or sweep timestamp)
            conditions: Conditions of a freshly closed bar, or None for a
                sweep that only retries deferred transitions

        Returns:
            The newly held action if a transition fired, else None
        """
        target = self.pending(symbol, now, conditions)
        if target is not None:
            self.commit(symbol, target, now)
        return target

    def pending(
        self, symbol: str, now: int, conditions: BarConditions | None = None
    ) -> Action | None:
        """Like ``evaluate`` but leaves the held action untouched.

        The caller commits the returned action once it has been emitted.
        """
        if conditions is not None:
            self.record_bar(symbol, conditions)

        target = self.eligible_transition(symbol, now)
        if target is None:
            return None

        if self.in_cooldown(symbol, now):
            logger.debug(
                f"Deferred {symbol} -> {target.value}: cooldown "
                f"({now - self.get_state(symbol).last_signal_at}ms < {self.cooldown_ms}ms)"
            )
            return None
        return target

    def commit(self, symbol: str, action: Action, now: int) -> None:
        state = self.get_state(symbol)
        previous = state.held_action
        state.held_action = action
        state.held_since = now
        state.last_signal_at = now
        state.reset_candidates()
        logger.debug(f"{symbol} transition {previous.value} -> {action.value} @ {now}")

    def reset(self, symbol: str | None = None) -> None:
        if symbol is None:
            self._states.clear()
        else:
            self._states.pop(symbol, None)
