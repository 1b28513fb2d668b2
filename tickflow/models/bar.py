"""Bar (candlestick) data models.

Hot path models: slotted dataclasses with float prices and integer
millisecond timestamps.
"""

from collections import deque
from dataclasses import dataclass
from typing import Iterator

from tickflow.models.errors import InvariantViolation


@dataclass(slots=True)
class Tick:
    """A single price update. Transient, never stored."""

    symbol: str
    price: float
    timestamp_ms: int


@dataclass(slots=True)
class Bar:
    """OHLC bar for one (symbol, timeframe) bucket.

    Mutable only while it is the most recent bar. Once a later period
    begins the aggregator calls ``close()`` and any further update is a
    programming error.
    """

    symbol: str
    timeframe: str
    period_start: int  # Bucket key, Unix ms
    open: float
    high: float
    low: float
    close: float
    ticks: int = 1
    is_closed: bool = False

    @classmethod
    def open_at(cls, symbol: str, timeframe: str, period_start: int, price: float) -> "Bar":
        """Open a new bar with open = high = low = close = price."""
        return cls(
            symbol=symbol,
            timeframe=timeframe,
            period_start=period_start,
            open=price,
            high=price,
            low=price,
            close=price,
        )

    def update(self, price: float, period_start: int) -> None:
        """Fold a tick belonging to this bar's bucket into OHLC."""
        if self.is_closed:
            raise InvariantViolation(
                f"Update on closed bar {self.symbol} {self.timeframe} @ {self.period_start}"
            )
        if period_start != self.period_start:
            raise InvariantViolation(
                f"Bucket mismatch for {self.symbol} {self.timeframe}: "
                f"open bar {self.period_start}, tick bucket {period_start}"
            )
        # high/low only widen
        if price > self.high:
            self.high = price
        if price < self.low:
            self.low = price
        self.close = price
        self.ticks += 1

    def close_bar(self) -> "Bar":
        """Freeze the bar and return it."""
        self.is_closed = True
        return self

    @property
    def is_bullish(self) -> bool:
        """Check if this is a bullish (green) bar."""
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        """Check if this is a bearish (red) bar."""
        return self.close < self.open

    @property
    def range_size(self) -> float:
        """Get the full range (high - low) of the bar."""
        return self.high - self.low


@dataclass(slots=True, frozen=True)
class ClosedBar:
    """Event emitted by the aggregator when a bar freezes."""

    symbol: str
    timeframe: str
    bar: Bar


class BarHistory:
    """Bounded FIFO of closed bars for one (symbol, timeframe)."""

    __slots__ = ("symbol", "timeframe", "max_size", "_bars")

    def __init__(self, symbol: str, timeframe: str, max_size: int = 400):
        self.symbol = symbol
        self.timeframe = timeframe
        self.max_size = max_size
        self._bars: deque[Bar] = deque(maxlen=max_size)

    def add(self, bar: Bar) -> None:
        """Append a closed bar, evicting the oldest at capacity."""
        if not bar.is_closed:
            raise InvariantViolation(
                f"Open bar pushed to history {self.symbol} {self.timeframe}"
            )
        if self._bars and bar.period_start <= self._bars[-1].period_start:
            raise InvariantViolation(
                f"Bar history out of order for {self.symbol} {self.timeframe}: "
                f"{bar.period_start} after {self._bars[-1].period_start}"
            )
        self._bars.append(bar)

    @property
    def last(self) -> Bar | None:
        return self._bars[-1] if self._bars else None

    def tail(self, n: int) -> list[Bar]:
        """Return up to the last ``n`` bars, oldest first."""
        if n <= 0:
            return []
        size = len(self._bars)
        return [self._bars[i] for i in range(max(0, size - n), size)]

    def get_closes(self) -> list[float]:
        """Get list of close prices."""
        return [b.close for b in self._bars]

    def clear(self) -> None:
        self._bars.clear()

    def __len__(self) -> int:
        return len(self._bars)

    def __iter__(self) -> Iterator[Bar]:
        return iter(self._bars)
