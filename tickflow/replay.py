"""Recorded tick replay.

Feeds recorded ticks into a SignalEngine, optionally interleaving
evaluation sweeps on a synthetic timer grid. Replaying the same file with
the same configuration reproduces the same signals, IDs included.

Supported formats:
- CSV with a header row: symbol,price,timestamp_ms
- JSON lines: {"symbol": ..., "price": ..., "timestamp_ms": ...}
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, Iterator

import orjson

from tickflow.engine import SignalEngine
from tickflow.models import Signal, Tick

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("symbol", "price", "timestamp_ms")


def _to_tick(row: dict, source: str, line_no: int) -> Tick:
    missing = [k for k in REQUIRED_FIELDS if k not in row or row[k] in (None, "")]
    if missing:
        raise ValueError(f"{source}:{line_no}: missing {', '.join(missing)}")
    try:
        return Tick(
            symbol=str(row["symbol"]),
            price=float(row["price"]),
            timestamp_ms=int(row["timestamp_ms"]),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"{source}:{line_no}: {e}") from e


def load_ticks_csv(path: Path) -> Iterator[Tick]:
    """Stream ticks from a CSV file."""
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        # Header is line 1
        for line_no, row in enumerate(reader, start=2):
            yield _to_tick(row, str(path), line_no)


def load_ticks_jsonl(path: Path) -> Iterator[Tick]:
    """Stream ticks from a JSON-lines file. Blank lines are skipped."""
    with open(path, "rb") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = orjson.loads(line)
            except orjson.JSONDecodeError as e:
                raise ValueError(f"{path}:{line_no}: {e}") from e
            yield _to_tick(row, str(path), line_no)


def load_ticks(path: Path) -> Iterator[Tick]:
    """Pick the loader from the file suffix (.csv, .jsonl / .ndjson)."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return load_ticks_csv(path)
    if suffix in (".jsonl", ".ndjson"):
        return load_ticks_jsonl(path)
    raise ValueError(f"Unsupported tick file format: {path.name}")


def replay_ticks(
    engine: SignalEngine,
    ticks: Iterable[Tick],
    sweep_interval_ms: int | None = None,
) -> list[Signal]:
    """Feed ticks into the engine in order.

    Args:
        engine: Target engine
        ticks: Ticks in arrival order
        sweep_interval_ms: If set, ``evaluate_all`` runs at every multiple
            of this interval passed by the tick clock, before the tick
            that crosses it

    Returns:
        All signals emitted, in emission order
    """
    if sweep_interval_ms is not None and sweep_interval_ms <= 0:
        raise ValueError(f"sweep_interval_ms must be positive, got {sweep_interval_ms}")

    signals: list[Signal] = []
    next_sweep: int | None = None
    count = 0

    for tick in ticks:
        if sweep_interval_ms is not None:
            if next_sweep is None:
                next_sweep = (tick.timestamp_ms // sweep_interval_ms + 1) * sweep_interval_ms
            while next_sweep <= tick.timestamp_ms:
                signals.extend(engine.evaluate_all(next_sweep))
                next_sweep += sweep_interval_ms

        signals.extend(engine.ingest_tick(tick.symbol, tick.price, tick.timestamp_ms))
        count += 1

    logger.info(f"Replayed {count} ticks, {len(signals)} signals")
    return signals
