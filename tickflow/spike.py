"""Tick-to-tick spike detection.

Flags a tick whose price jumps at least a per-symbol number of points
away from the previous tick of the same symbol. Symbols without a
configured threshold are ignored.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SpikeEvent:
    """A detected price jump."""

    symbol: str
    price: float
    previous_price: float
    jump: float  # Signed: positive = up spike
    timestamp_ms: int


class SpikeDetector:
    """Per-symbol jump detector."""

    def __init__(self, thresholds: dict[str, float] | None = None):
        self.thresholds = dict(thresholds or {})
        self._last_price: dict[str, float] = {}

    def observe(self, symbol: str, price: float, timestamp_ms: int) -> SpikeEvent | None:
        """Record a tick and return a SpikeEvent if it jumped past the threshold."""
        threshold = self.thresholds.get(symbol)
        if threshold is None:
            return None

        previous = self._last_price.get(symbol)
        self._last_price[symbol] = price
        if previous is None:
            return None

        jump = price - previous
        if abs(jump) < threshold:
            return None

        logger.info(f"Spike on {symbol}: jump {jump:+.2f} points @ {timestamp_ms}")
        return SpikeEvent(
            symbol=symbol,
            price=price,
            previous_price=previous,
            jump=jump,
            timestamp_ms=timestamp_ms,
        )

    def reset(self, symbol: str | None = None) -> None:
        if symbol is None:
            self._last_price.clear()
        else:
            self._last_price.pop(symbol, None)
