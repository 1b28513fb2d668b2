"""Streaming tick-to-signal pipeline.

Pure business logic with no I/O dependencies (no network, no storage).
Ticks go in through ``SignalEngine.ingest_tick``; confirmed BUY/SELL
signals come out through ``SignalEngine.on_signal`` callbacks.
"""

from tickflow.engine import SignalEngine
from tickflow.models import Action, EngineConfig, InvariantViolation, Signal

__version__ = "1.0.0"

__all__ = [
    "SignalEngine",
    "Action",
    "EngineConfig",
    "InvariantViolation",
    "Signal",
]
