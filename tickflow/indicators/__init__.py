"""Technical indicators (pure math, no I/O)."""

from tickflow.indicators.engine import (
    IndicatorEngine,
    rsi_from_averages,
    true_range,
)

__all__ = [
    "IndicatorEngine",
    "rsi_from_averages",
    "true_range",
]
