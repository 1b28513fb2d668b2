"""Signal strategy: crossover tracking, confirmation and risk levels.

Pure business logic with no I/O dependencies.
"""

from tickflow.strategy.crossover import CrossoverTracker, classify
from tickflow.strategy.filters import (
    is_bearish_engulfing,
    is_bullish_engulfing,
    is_flat_market,
    trend_agrees,
)
from tickflow.strategy.risk import RiskCalculator, RiskLevels
from tickflow.strategy.state_machine import BarConditions, ConfirmationStateMachine

__all__ = [
    "CrossoverTracker",
    "classify",
    "is_bearish_engulfing",
    "is_bullish_engulfing",
    "is_flat_market",
    "trend_agrees",
    "RiskCalculator",
    "RiskLevels",
    "BarConditions",
    "ConfirmationStateMachine",
]
