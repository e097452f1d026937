"""Latency-vs-load chart (matplotlib)."""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import matplotlib.ticker as ticker  # noqa: E402
import numpy as np  # noqa: E402

# Palette
COLORS = {
    "gossip": "#e74c3c",
    "signal": "#2980b9",
}
FILL_ALPHA = 0.15


def plot_latency(rows: list[dict], path: Path) -> None:
    """Plot mean propagation time (± sigma band) against message count, per kind."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(10, 5))

    for kind in sorted({r["kind"] for r in rows}):
        series = [r for r in rows if r["kind"] == kind and r["durations"]]
        if not series:
            continue
        x = np.array([r["messages"] for r in series])
        means = np.array([np.mean(r["durations"]) for r in series])
        stds = np.array([np.std(r["durations"]) for r in series])
        color = COLORS.get(kind, "#7f8c8d")
        ax.plot(x, means, marker="o", color=color, label=kind)
        ax.fill_between(x, means - stds, means + stds, color=color, alpha=FILL_ALPHA)

    ax.set_xlabel("Messages per trial")
    ax.set_ylabel("Time to full propagation (s)")
    ax.set_title("Propagation latency by trial kind")
    ax.xaxis.set_major_locator(ticker.MaxNLocator(integer=True))
    ax.grid(True, alpha=0.3)
    ax.legend()

    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
