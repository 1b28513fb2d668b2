"""Tests for recorded tick replay."""

import pytest

from tickflow import Action, EngineConfig, SignalEngine
from tickflow.models import Tick
from tickflow.replay import load_ticks, load_ticks_csv, load_ticks_jsonl, replay_ticks

BASE = 1_700_000_040_000


def _rising_ticks(symbol: str = "R_10") -> list[Tick]:
    prices = [100.0 + 0.01 * i for i in range(1, 18)]
    prices += [prices[-1] + k for k in (1.0, 2.0, 3.0)]
    prices.append(prices[-1] + 0.01)
    return [Tick(symbol, p, BASE + i * 10_000 + 1_000) for i, p in enumerate(prices)]


def _make_engine() -> SignalEngine:
    return SignalEngine(EngineConfig(trend_timeframe=None, min_gap_ratio=0.001))


def _write_csv(path, ticks):
    lines = ["symbol,price,timestamp_ms"]
    lines += [f"{t.symbol},{t.price!r},{t.timestamp_ms}" for t in ticks]
    path.write_text("\n".join(lines) + "\n")


def _write_jsonl(path, ticks):
    lines = [
        f'{{"symbol": "{t.symbol}", "price": {t.price!r}, "timestamp_ms": {t.timestamp_ms}}}'
        for t in ticks
    ]
    path.write_text("\n".join(lines) + "\n")


class _RecordingEngine:
    """Stands in for SignalEngine and records the call order."""

    def __init__(self):
        self.calls = []

    def ingest_tick(self, symbol, price, timestamp_ms):
        self.calls.append(("tick", timestamp_ms))
        return []

    def evaluate_all(self, now_ms):
        self.calls.append(("sweep", now_ms))
        return []


class TestLoaders:
    def test_csv(self, tmp_path):
        ticks = _rising_ticks()
        path = tmp_path / "ticks.csv"
        _write_csv(path, ticks)

        assert list(load_ticks_csv(path)) == ticks
        assert list(load_ticks(path)) == ticks

    def test_jsonl(self, tmp_path):
        ticks = _rising_ticks()
        path = tmp_path / "ticks.jsonl"
        _write_jsonl(path, ticks)

        assert list(load_ticks_jsonl(path)) == ticks
        assert list(load_ticks(path)) == ticks

    def test_jsonl_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "ticks.jsonl"
        path.write_text('\n{"symbol": "R_10", "price": 1.5, "timestamp_ms": 10}\n\n')
        assert list(load_ticks_jsonl(path)) == [Tick("R_10", 1.5, 10)]

    def test_csv_bad_row_reports_line(self, tmp_path):
        path = tmp_path / "ticks.csv"
        path.write_text("symbol,price,timestamp_ms\nR_10,1.0,10\nR_10,abc,20\n")
        with pytest.raises(ValueError, match=":3"):
            list(load_ticks_csv(path))

    def test_missing_field(self, tmp_path):
        path = tmp_path / "ticks.jsonl"
        path.write_text('{"symbol": "R_10", "price": 1.0}\n')
        with pytest.raises(ValueError, match="timestamp_ms"):
            list(load_ticks_jsonl(path))

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "ticks.jsonl"
        path.write_text("{not json\n")
        with pytest.raises(ValueError):
            list(load_ticks_jsonl(path))

    def test_unknown_suffix(self, tmp_path):
        with pytest.raises(ValueError):
            load_ticks(tmp_path / "ticks.parquet")


class TestReplay:
    """Tests for replay_ticks."""

    def test_replay_matches_live_ingestion(self, tmp_path):
        ticks = _rising_ticks()
        path = tmp_path / "ticks.csv"
        _write_csv(path, ticks)

        replayed = replay_ticks(_make_engine(), load_ticks(path))

        live_engine = _make_engine()
        live = []
        for t in ticks:
            live.extend(live_engine.ingest_tick(t.symbol, t.price, t.timestamp_ms))

        assert [s.action for s in replayed] == [Action.BUY]
        assert replayed == live

    def test_sweeps_interleave_on_grid(self):
        engine = _RecordingEngine()
        ticks = [Tick("X", 1.0, 100), Tick("X", 1.0, 1_100), Tick("X", 1.0, 2_600)]

        replay_ticks(engine, ticks, sweep_interval_ms=1_000)

        assert engine.calls == [
            ("tick", 100),
            ("sweep", 1_000),
            ("tick", 1_100),
            ("sweep", 2_000),
            ("tick", 2_600),
        ]

    def test_no_sweeps_by_default(self):
        engine = _RecordingEngine()
        replay_ticks(engine, [Tick("X", 1.0, 100), Tick("X", 1.0, 5_000)])
        assert [c[0] for c in engine.calls] == ["tick", "tick"]

    def test_invalid_sweep_interval(self):
        with pytest.raises(ValueError):
            replay_ticks(_RecordingEngine(), [], sweep_interval_ms=0)
