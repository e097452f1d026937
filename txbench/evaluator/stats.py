"""Basic statistical helpers for trial durations."""

from __future__ import annotations

import math


def mean(v: list[float]) -> float:
    return sum(v) / len(v) if v else 0.0


def stdev(v: list[float]) -> float:
    if len(v) < 2:
        return 0.0
    m = mean(v)
    return math.sqrt(sum((x - m) ** 2 for x in v) / (len(v) - 1))


def median(v: list[float]) -> float:
    if not v:
        return 0.0
    s = sorted(v)
    n = len(s)
    return float(s[n // 2]) if n % 2 == 1 else (s[n // 2 - 1] + s[n // 2]) / 2.0


def fmt_seconds(v: list[float]) -> str:
    """Duration stats: mean +/- sigma  [min, med, max]  (n=...), in seconds."""
    if not v:
        return "—"
    return (
        f"{mean(v):.3f}s ± {stdev(v):.3f}"
        f"  [min={min(v):.3f}, med={median(v):.3f}, max={max(v):.3f}]"
        f"  (n={len(v)})"
    )


def throughput(messages: int, durations: list[float]) -> float:
    """Messages fully propagated per second, from the mean duration."""
    m = mean(durations)
    return messages / m if m > 0 else 0.0
