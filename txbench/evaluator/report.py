"""Report generation — single run (run_meta.json) and cross-run (Redis) modes."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path

from txbench.common.console import header, section
from txbench.evaluator.stats import fmt_seconds, mean, throughput

# (kind, messages) -> trial records
Groups = dict[tuple[str, int], list[dict]]


def group_results(results: list[dict]) -> Groups:
    """Bucket trial records by trial kind and message count."""
    groups: Groups = defaultdict(list)
    for rec in results:
        groups[(rec["kind"], int(rec["messages"]))].append(rec)
    return dict(sorted(groups.items()))


def summarize(groups: Groups) -> list[dict]:
    """One summary row per (kind, messages) bucket."""
    rows = []
    for (kind, messages), recs in groups.items():
        durations = [r["duration"] for r in recs if r.get("duration") is not None]
        failed = [r for r in recs if r.get("duration") is None]
        rows.append({
            "kind": kind,
            "messages": messages,
            "trials": len(recs),
            "converged": len(durations),
            "timed_out": len(failed),
            "durations": durations,
            "mean_duration": mean(durations) if durations else None,
            "throughput": throughput(messages, durations),
            "mean_delivery_pct": mean([r.get("delivery_pct", 0.0) for r in failed]) if failed else None,
        })
    return rows


def _print_rows(rows: list[dict]) -> None:
    for row in rows:
        print(section(f"{row['kind'].upper()}  —  {row['messages']} messages"))
        print(f"  Trials:       {row['trials']}  (converged {row['converged']}, "
              f"timed out {row['timed_out']})")
        print(f"  Duration:     {fmt_seconds(row['durations'])}")
        if row["durations"]:
            print(f"  Throughput:   {row['throughput']:.1f} msg/s")
        if row["mean_delivery_pct"] is not None:
            print(f"  Delivery (unconverged trials): {row['mean_delivery_pct']:.1f}% mean")


def _dump(output: str | None, payload: dict) -> None:
    if output:
        Path(output).write_text(json.dumps(payload, indent=2, default=str))
        print(f"\n  Raw data → {output}")


def run_meta(meta_path: str, output: str | None, plot: str | None = None) -> list[dict]:
    """Report on a single run from its ``run_meta.json``."""
    meta = json.loads(Path(meta_path).read_text())
    results = meta.get("results", [])

    print(header("TXBENCH — RUN REPORT"))
    config = meta.get("config", {})
    print(f"\n  Run:           {meta.get('timestamp', '?')}")
    print(f"  Active agents: {config.get('active_agents', '?')}  "
          f"nodes={config.get('nodes', '?')}  local={config.get('local', '?')}")
    if meta.get("status") == "aborted":
        print(f"  Status:        aborted ({meta.get('error', 'unknown error')})")
    if not results:
        print("  No trial results recorded.")
        return []

    rows = summarize(group_results(results))
    _print_rows(rows)
    _dump(output, {"meta": meta, "summary": rows})
    if plot:
        from txbench.evaluator.plot import plot_latency
        plot_latency(rows, Path(plot))
        print(f"  Chart → {plot}")
    print(f"\n{'=' * 76}\n")
    return rows


def run_all_runs(output: str | None, plot: str | None = None) -> list[dict]:
    """Query Redis for ALL stored runs and produce a cross-run report."""
    from txbench.common.redis import get_all_runs, get_run, get_trial_results

    run_ids = get_all_runs()
    if not run_ids:
        print("  No runs found in Redis.")
        return []

    print(header("TXBENCH — CROSS-RUN REPORT"))
    print(f"\n  Runs in database: {len(run_ids)}")

    all_results: list[dict] = []
    for rid in run_ids:
        run = get_run(rid)
        results = get_trial_results(rid)
        for rec in results:
            rec["run_id"] = rid
        all_results.extend(results)
        print(f"  Run {rid}: {len(results)} trials  (status={run.get('status', '?')})")

    if not all_results:
        print("  No trial results stored. Nothing to evaluate.")
        return []

    rows = summarize(group_results(all_results))
    _print_rows(rows)
    _dump(output, {"results": all_results, "summary": rows})
    if plot:
        from txbench.evaluator.plot import plot_latency
        plot_latency(rows, Path(plot))
        print(f"  Chart → {plot}")
    print(f"\n{'=' * 76}\n")
    return rows
