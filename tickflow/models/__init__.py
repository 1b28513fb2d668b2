"""Data models."""

from tickflow.models.errors import InvariantViolation
from tickflow.models.bar import Bar, BarHistory, ClosedBar, Tick
from tickflow.models.signal import Action, CrossDirection, Signal, direction_for
from tickflow.models.state import (
    CrossoverRecord,
    IndicatorSnapshot,
    IndicatorState,
    SymbolState,
)
from tickflow.models.config import EngineConfig, timeframe_to_ms

__all__ = [
    "InvariantViolation",
    "Bar",
    "BarHistory",
    "ClosedBar",
    "Tick",
    "Action",
    "CrossDirection",
    "Signal",
    "direction_for",
    "CrossoverRecord",
    "IndicatorSnapshot",
    "IndicatorState",
    "SymbolState",
    "EngineConfig",
    "timeframe_to_ms",
]
