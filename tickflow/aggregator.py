"""Tick-to-bar aggregator.

Buckets raw ticks into fixed-width OHLC bars per (symbol, timeframe).
Several timeframes share one tick stream, e.g. 10s evaluation bars plus
a 1m trend-filter timeframe.

Bucketing rule:
- Bucket key = floor(timestamp_ms / interval_ms) * interval_ms
- A tick in a later bucket freezes the open bar and opens a new one
- A tick in an earlier bucket is stale and dropped (never reopens a bar)
"""

import logging

from tickflow.models import Bar, BarHistory, ClosedBar
from tickflow.models.config import timeframe_to_ms

logger = logging.getLogger(__name__)


class TimeframeAggregator:
    """Builds bars of one timeframe for any number of symbols.

    Usage:
        agg = TimeframeAggregator("10s")
        closed = agg.ingest("R_10", 101.5, 1_700_000_012_345)
    """

    def __init__(self, timeframe: str, max_history: int = 400):
        self.timeframe = timeframe
        self.interval_ms = timeframe_to_ms(timeframe)
        self.max_history = max_history

        self._open: dict[str, Bar] = {}
        self._history: dict[str, BarHistory] = {}
        self.stale_ticks = 0

    def bucket_of(self, timestamp_ms: int) -> int:
        """Get the period start for a tick timestamp."""
        return (timestamp_ms // self.interval_ms) * self.interval_ms

    def ingest(self, symbol: str, price: float, timestamp_ms: int) -> Bar | None:
        """Fold a tick into the open bar.

        Returns:
            The bar frozen by this tick, if the tick opened a new period.
        """
        bucket = self.bucket_of(timestamp_ms)
        current = self._open.get(symbol)

        if current is not None and bucket < current.period_start:
            self.stale_ticks += 1
            logger.warning(
                f"Dropping stale tick for {symbol} {self.timeframe}: "
                f"bucket {bucket} < open bar {current.period_start}"
            )
            return None

        if current is not None and bucket == current.period_start:
            current.update(price, bucket)
            return None

        closed = None
        if current is not None:
            closed = current.close_bar()
            self._get_history(symbol).add(closed)
            logger.debug(
                f"Closed {symbol} {self.timeframe} bar @ {closed.period_start} "
                f"O={closed.open} H={closed.high} L={closed.low} C={closed.close}"
            )

        self._open[symbol] = Bar.open_at(symbol, self.timeframe, bucket, price)
        return closed

    def _get_history(self, symbol: str) -> BarHistory:
        history = self._history.get(symbol)
        if history is None:
            history = BarHistory(symbol, self.timeframe, self.max_history)
            self._history[symbol] = history
        return history

    def get_open_bar(self, symbol: str) -> Bar | None:
        """Get the in-progress bar for a symbol."""
        return self._open.get(symbol)

    def get_history(self, symbol: str) -> BarHistory:
        """Get the closed-bar history for a symbol (created empty if unknown)."""
        return self._get_history(symbol)

    def reset(self, symbol: str | None = None) -> None:
        """Drop open bars and history for one symbol, or all if None."""
        if symbol is not None:
            self._open.pop(symbol, None)
            self._history.pop(symbol, None)
        else:
            self._open.clear()
            self._history.clear()


class CandleAggregator:
    """Fans one tick stream out to several independently bucketed timeframes.

    Usage:
        aggregator = CandleAggregator({"10s": 10_000, "1m": 60_000})
        for closed in aggregator.ingest("R_10", 101.5, ts):
            ...
    """

    def __init__(self, timeframes: list[str] | dict[str, int], max_history: int = 400):
        """Initialize the aggregator.

        Args:
            timeframes: Timeframe names (a mapping is accepted, keys are used)
            max_history: Closed bars kept per (symbol, timeframe)
        """
        names = list(timeframes)
        if not names:
            raise ValueError("CandleAggregator needs at least one timeframe")

        self._aggregators: dict[str, TimeframeAggregator] = {
            tf: TimeframeAggregator(tf, max_history) for tf in names
        }
        logger.info(f"CandleAggregator initialized for timeframes: {names}")

    @property
    def timeframes(self) -> list[str]:
        return list(self._aggregators)

    def ingest(self, symbol: str, price: float, timestamp_ms: int) -> list[ClosedBar]:
        """Route a tick to every timeframe.

        Returns:
            Bars frozen by this tick, in configured timeframe order
        """
        closed: list[ClosedBar] = []
        for timeframe, aggregator in self._aggregators.items():
            bar = aggregator.ingest(symbol, price, timestamp_ms)
            if bar is not None:
                closed.append(ClosedBar(symbol=symbol, timeframe=timeframe, bar=bar))
        return closed

    def get_open_bar(self, symbol: str, timeframe: str) -> Bar | None:
        return self._aggregator(timeframe).get_open_bar(symbol)

    def get_history(self, symbol: str, timeframe: str) -> BarHistory:
        return self._aggregator(timeframe).get_history(symbol)

    def stale_count(self) -> dict[str, int]:
        """Number of stale ticks dropped, per timeframe."""
        return {tf: agg.stale_ticks for tf, agg in self._aggregators.items()}

    def _aggregator(self, timeframe: str) -> TimeframeAggregator:
        aggregator = self._aggregators.get(timeframe)
        if aggregator is None:
            raise KeyError(f"Timeframe '{timeframe}' is not aggregated")
        return aggregator

    def reset(self, symbol: str | None = None) -> None:
        """Reset aggregation state.

        Args:
            symbol: Reset only this symbol's bars, or all if None
        """
        for aggregator in self._aggregators.values():
            aggregator.reset(symbol)
