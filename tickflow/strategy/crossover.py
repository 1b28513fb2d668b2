"""EMA crossover classification and confirmation window."""

import logging
from collections import deque

from tickflow.models import CrossDirection, CrossoverRecord, IndicatorSnapshot

logger = logging.getLogger(__name__)


def classify(
    ema_fast: float, ema_slow: float, close: float, min_gap_ratio: float
) -> tuple[CrossDirection, float]:
    """Classify the EMA relationship of one bar.

    Returns:
        (direction, gap_ratio) where gap_ratio = |fast - slow| / close.
        Separations below ``min_gap_ratio`` classify as FLAT.
    """
    gap_ratio = abs(ema_fast - ema_slow) / close
    if gap_ratio >= min_gap_ratio:
        if ema_fast > ema_slow:
            return CrossDirection.UP, gap_ratio
        if ema_fast < ema_slow:
            return CrossDirection.DOWN, gap_ratio
    return CrossDirection.FLAT, gap_ratio


class CrossoverTracker:
    """Per-symbol bounded window of classified crossover records."""

    def __init__(self, min_gap_ratio: float = 0.0001, capacity: int = 5):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.min_gap_ratio = min_gap_ratio
        self.capacity = capacity
        self._windows: dict[str, deque[CrossoverRecord]] = {}

    def record(
        self, symbol: str, snapshot: IndicatorSnapshot, timestamp_ms: int
    ) -> CrossoverRecord:
        """Classify a seeded snapshot and append it to the symbol's window."""
        if snapshot.ema_fast is None or snapshot.ema_slow is None:
            raise ValueError(f"EMA not seeded for {symbol}, cannot classify crossover")

        direction, gap_ratio = classify(
            snapshot.ema_fast, snapshot.ema_slow, snapshot.close, self.min_gap_ratio
        )
        rec = CrossoverRecord(
            direction=direction, gap_ratio=gap_ratio, timestamp_ms=timestamp_ms
        )

        window = self._windows.get(symbol)
        if window is None:
            window = deque(maxlen=self.capacity)
            self._windows[symbol] = window
        window.append(rec)
        return rec

    def confirmed(self, symbol: str, direction: CrossDirection, window: int) -> bool:
        """True iff the last ``window`` records all equal ``direction``
        and each clears the minimum gap ratio."""
        if window < 1 or window > self.capacity:
            raise ValueError(
                f"window must be within [1, {self.capacity}], got {window}"
            )
        records = self._windows.get(symbol)
        if records is None or len(records) < window:
            return False
        for i in range(len(records) - window, len(records)):
            rec = records[i]
            if rec.direction != direction or rec.gap_ratio < self.min_gap_ratio:
                return False
        return True

    def latest(self, symbol: str) -> CrossoverRecord | None:
        records = self._windows.get(symbol)
        return records[-1] if records else None

    def history(self, symbol: str) -> list[CrossoverRecord]:
        return list(self._windows.get(symbol, ()))

    def reset(self, symbol: str | None = None) -> None:
        if symbol is None:
            self._windows.clear()
        else:
            self._windows.pop(symbol, None)
