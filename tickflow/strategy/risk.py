"""ATR-based stop-loss / take-profit levels."""

import logging
from dataclasses import dataclass

from tickflow.models import Action

logger = logging.getLogger(__name__)

# Reward:risk skew below which a configuration is flagged
MIN_REWARD_RISK = 1.5


@dataclass(slots=True, frozen=True)
class RiskLevels:
    """Levels derived for one signal."""

    stop_loss: float
    take_profit: float
    atr: float  # Floored ATR the levels were derived from


class RiskCalculator:
    """Derives SL/TP from entry price and current ATR.

    - BUY:  SL = entry - ATR * sl_mult, TP = entry + ATR * tp_mult
    - SELL: SL = entry + ATR * sl_mult, TP = entry - ATR * tp_mult

    ATR is floored at ``min_atr`` first.
    """

    def __init__(self, sl_atr_mult: float = 3.0, tp_atr_mult: float = 6.0, min_atr: float = 0.00001):
        if sl_atr_mult <= 0 or tp_atr_mult <= 0:
            raise ValueError("ATR multipliers must be positive")
        self.sl_atr_mult = sl_atr_mult
        self.tp_atr_mult = tp_atr_mult
        self.min_atr = min_atr

        if self.risk_reward < MIN_REWARD_RISK:
            logger.warning(
                f"Reward:risk {self.risk_reward:.2f} below {MIN_REWARD_RISK} "
                f"(tp={tp_atr_mult} sl={sl_atr_mult})"
            )

    @property
    def risk_reward(self) -> float:
        return self.tp_atr_mult / self.sl_atr_mult

    def compute(self, action: Action, entry_price: float, atr: float | None) -> RiskLevels:
        """Compute SL/TP for an emitted action."""
        safe_atr = self.min_atr if atr is None else max(atr, self.min_atr)
        sl_distance = safe_atr * self.sl_atr_mult
        tp_distance = safe_atr * self.tp_atr_mult

        if action == Action.BUY:
            return RiskLevels(
                stop_loss=entry_price - sl_distance,
                take_profit=entry_price + tp_distance,
                atr=safe_atr,
            )
        if action == Action.SELL:
            return RiskLevels(
                stop_loss=entry_price + sl_distance,
                take_profit=entry_price - tp_distance,
                atr=safe_atr,
            )
        raise ValueError(f"No risk levels for action {action}")
