"""Signal data models."""

import hashlib
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class Action(str, Enum):
    """Held or emitted trade action."""

    NONE = "NONE"
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "Action":
        if self is Action.BUY:
            return Action.SELL
        if self is Action.SELL:
            return Action.BUY
        return Action.NONE


class CrossDirection(str, Enum):
    """EMA fast/slow relationship of a closed bar."""

    UP = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"


def direction_for(action: Action) -> CrossDirection:
    """Crossover direction that supports ``action``."""
    if action is Action.BUY:
        return CrossDirection.UP
    if action is Action.SELL:
        return CrossDirection.DOWN
    return CrossDirection.FLAT


def _generate_signal_id(symbol: str, action: str, timestamp_ms: int) -> str:
    """Generate deterministic signal ID based on signal attributes.

    Replaying the same tick sequence produces the same IDs.
    """
    key = f"{symbol}:{timestamp_ms}:{action}"
    return hashlib.sha256(key.encode()).hexdigest()[:32]


class Signal(BaseModel):
    """Finalized trade signal. Immutable once emitted."""

    model_config = ConfigDict(frozen=True)

    id: str = ""  # Set in model_post_init
    symbol: str
    action: Action
    entry_price: float
    stop_loss: float
    take_profit: float
    atr: float  # Floored ATR used for the levels
    timestamp_ms: int

    # Indicator snapshot at fire time
    ema_fast: float | None = None
    ema_slow: float | None = None
    rsi: float | None = None

    @field_validator("action")
    @classmethod
    def _emittable(cls, value: Action) -> Action:
        if value is Action.NONE:
            raise ValueError("a signal must be BUY or SELL")
        return value

    def model_post_init(self, __context) -> None:
        """Generate deterministic ID after model initialization."""
        if not self.id:
            object.__setattr__(
                self,
                "id",
                _generate_signal_id(self.symbol, self.action.value, self.timestamp_ms),
            )

    @property
    def signal_time(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000, tz=timezone.utc)

    @property
    def risk_amount(self) -> float:
        """Get the risk amount (distance to stop loss)."""
        if self.action == Action.BUY:
            return self.entry_price - self.stop_loss
        return self.stop_loss - self.entry_price

    @property
    def reward_amount(self) -> float:
        """Get the reward amount (distance to take profit)."""
        if self.action == Action.BUY:
            return self.take_profit - self.entry_price
        return self.entry_price - self.take_profit
