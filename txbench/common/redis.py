"""Redis connection and data-access helpers for persistent trial storage."""

from __future__ import annotations

import json
import os

import redis


_REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
_REDIS_PORT = int(os.environ.get("REDIS_PORT", "6379"))
_REDIS_DB = int(os.environ.get("REDIS_DB", "0"))
_REDIS_PASSWORD = os.environ.get("REDIS_PASSWORD") or None

_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Return a shared Redis client (lazy singleton)."""
    global _client
    if _client is None:
        _client = redis.Redis(
            host=_REDIS_HOST,
            port=_REDIS_PORT,
            db=_REDIS_DB,
            password=_REDIS_PASSWORD,
            decode_responses=True,
        )
    return _client


def _encode(meta: dict) -> dict[str, str]:
    return {
        k: json.dumps(v) if isinstance(v, (dict, list, type(None), bool)) else str(v)
        for k, v in meta.items()
    }


def _decode(raw: dict[str, str]) -> dict:
    result: dict = {}
    for k, v in raw.items():
        try:
            result[k] = json.loads(v)
        except (json.JSONDecodeError, TypeError):
            result[k] = v
    return result


# ── Run metadata ─────────────────────────────────────────────────────────────


def store_run(run_id: str, meta: dict) -> None:
    """Persist run metadata and add it to the chronological index."""
    r = get_redis()
    r.hset(f"run:{run_id}", mapping=_encode(meta))
    r.zadd("runs", {run_id: float(meta.get("timestamp_unix", 0))})


def get_run(run_id: str) -> dict:
    """Retrieve run metadata."""
    return _decode(get_redis().hgetall(f"run:{run_id}"))


def get_all_runs() -> list[str]:
    """Return all run IDs ordered chronologically (oldest first)."""
    return get_redis().zrange("runs", 0, -1)


# ── Trial results ────────────────────────────────────────────────────────────


def store_trial_result(run_id: str, result: dict) -> None:
    """Append one trial record to the run's result list."""
    get_redis().rpush(f"run:{run_id}:results", json.dumps(result))


def get_trial_results(run_id: str) -> list[dict]:
    """Return all trial records for a run."""
    raw = get_redis().lrange(f"run:{run_id}:results", 0, -1)
    return [json.loads(r) for r in raw]
