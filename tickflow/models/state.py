"""Per-symbol and per-(symbol, timeframe) mutable state records."""

from dataclasses import dataclass, field

from tickflow.models.signal import Action, CrossDirection


@dataclass(slots=True)
class IndicatorState:
    """Incremental EMA/RSI/ATR state for one (symbol, timeframe).

    Owned by IndicatorEngine. Each indicator carries its value plus the
    accumulator used for the simple-average seed; ``None`` means not
    seeded yet.
    """

    bars: int = 0
    prev_close: float | None = None

    ema_fast: float | None = None
    ema_slow: float | None = None
    close_sum: float = 0.0  # Sum of closes until the slow EMA is seeded

    avg_gain: float | None = None
    avg_loss: float | None = None
    gain_sum: float = 0.0
    loss_sum: float = 0.0
    deltas: int = 0

    atr: float | None = None
    tr_sum: float = 0.0
    trs: int = 0


@dataclass(slots=True, frozen=True)
class IndicatorSnapshot:
    """Read-out of an IndicatorState after a bar close."""

    symbol: str
    timeframe: str
    timestamp_ms: int  # period_start of the bar that produced it
    close: float
    bars: int
    ema_fast: float | None
    ema_slow: float | None
    rsi: float | None
    atr: float | None

    @property
    def is_ready(self) -> bool:
        return (
            self.ema_fast is not None
            and self.ema_slow is not None
            and self.rsi is not None
            and self.atr is not None
        )


@dataclass(slots=True, frozen=True)
class CrossoverRecord:
    """Classified EMA relationship of one closed bar."""

    direction: CrossDirection
    gap_ratio: float
    timestamp_ms: int


@dataclass(slots=True)
class SymbolState:
    """Held action and debounce counters for one symbol."""

    symbol: str
    held_action: Action = Action.NONE
    held_since: int | None = None
    last_signal_at: int | None = None
    candidate_count: dict[Action, int] = field(
        default_factory=lambda: {Action.BUY: 0, Action.SELL: 0}
    )

    def reset_candidates(self) -> None:
        self.candidate_count[Action.BUY] = 0
        self.candidate_count[Action.SELL] = 0
