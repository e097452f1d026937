"""Tests for result aggregation, Redis storage and the report CLI."""

import json
from pathlib import Path

import pytest

import txbench.common.redis as redis_store
from txbench.evaluator import cli as report_cli
from txbench.evaluator.report import group_results, run_all_runs, run_meta, summarize
from txbench.evaluator.stats import fmt_seconds, median, stdev, throughput

RESULTS = [
    {"kind": "gossip", "messages": 10, "duration": 1.0, "delivery_pct": 100.0},
    {"kind": "gossip", "messages": 10, "duration": 3.0, "delivery_pct": 100.0},
    {"kind": "signal", "messages": 10, "duration": None, "delivery_pct": 40.0},
    {"kind": "signal", "messages": 10, "duration": 2.0, "delivery_pct": 100.0},
    {"kind": "gossip", "messages": 20, "duration": 4.0, "delivery_pct": 100.0},
]


class FakeRedis:
    """Just enough of redis.Redis for the trial store."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict] = {}
        self.lists: dict[str, list] = {}
        self.zsets: dict[str, dict] = {}

    def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update(mapping)

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)

    def zrange(self, key, start, end):
        return [k for k, _ in sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1])]

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)

    def lrange(self, key, start, end):
        return list(self.lists.get(key, []))


@pytest.fixture
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr(redis_store, "get_redis", lambda: fake)
    return fake


def test_stats_helpers() -> None:
    assert median([3.0, 1.0, 2.0]) == 2.0
    assert median([1.0, 2.0, 3.0, 4.0]) == 2.5
    assert stdev([1.0]) == 0.0
    assert throughput(10, [2.0, 3.0]) == 4.0
    assert throughput(10, []) == 0.0
    assert fmt_seconds([]) == "—"
    assert "(n=2)" in fmt_seconds([1.0, 2.0])


def test_group_and_summarize() -> None:
    rows = summarize(group_results(RESULTS))

    assert [(r["kind"], r["messages"]) for r in rows] == [
        ("gossip", 10), ("gossip", 20), ("signal", 10),
    ]
    gossip10, _, signal10 = rows
    assert gossip10["mean_duration"] == 2.0
    assert gossip10["timed_out"] == 0
    assert gossip10["mean_delivery_pct"] is None
    assert signal10["converged"] == 1
    assert signal10["timed_out"] == 1
    assert signal10["mean_delivery_pct"] == 40.0


def test_run_meta_report(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    meta_file = tmp_path / "run_meta.json"
    meta_file.write_text(json.dumps({"timestamp": "now", "config": {"active_agents": 5}, "results": RESULTS}))
    output = tmp_path / "summary.json"

    rows = run_meta(str(meta_file), str(output))

    assert len(rows) == 3
    assert "SIGNAL  —  10 messages" in capsys.readouterr().out
    assert json.loads(output.read_text())["summary"][0]["kind"] == "gossip"


def test_run_meta_report_marks_aborted_runs(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    meta_file = tmp_path / "run_meta.json"
    meta_file.write_text(json.dumps({
        "status": "aborted", "error": "app install failed on node local/0: boom", "results": RESULTS[:1],
    }))

    rows = run_meta(str(meta_file), None)

    assert len(rows) == 1
    assert "aborted (app install failed on node local/0: boom)" in capsys.readouterr().out


def test_run_meta_with_plot(tmp_path: Path) -> None:
    meta_file = tmp_path / "run_meta.json"
    meta_file.write_text(json.dumps({"results": RESULTS}))
    chart = tmp_path / "graphs" / "latency.png"

    run_meta(str(meta_file), None, str(chart))

    assert chart.is_file()


def test_redis_round_trip(fake_redis: FakeRedis) -> None:
    redis_store.store_run("r1", {"timestamp_unix": 2.0, "status": "completed", "config": {"nodes": 3}})
    redis_store.store_run("r0", {"timestamp_unix": 1.0, "status": "running", "config": None})
    redis_store.store_trial_result("r1", RESULTS[0])

    assert redis_store.get_all_runs() == ["r0", "r1"]
    assert redis_store.get_run("r1") == {"timestamp_unix": 2.0, "status": "completed", "config": {"nodes": 3}}
    assert redis_store.get_run("r0")["config"] is None
    assert redis_store.get_trial_results("r1") == [RESULTS[0]]


def test_cross_run_report(fake_redis: FakeRedis, capsys: pytest.CaptureFixture) -> None:
    redis_store.store_run("r1", {"timestamp_unix": 1.0, "status": "completed"})
    for rec in RESULTS:
        redis_store.store_trial_result("r1", rec)

    rows = run_all_runs(None)

    assert sum(r["trials"] for r in rows) == len(RESULTS)
    assert "Run r1: 5 trials" in capsys.readouterr().out


def test_cross_run_report_empty(fake_redis: FakeRedis) -> None:
    assert run_all_runs(None) == []


def test_report_cli_requires_a_mode() -> None:
    with pytest.raises(SystemExit):
        report_cli.main([])
