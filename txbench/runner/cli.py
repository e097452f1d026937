"""CLI entrypoint for the trial runner.

Architecture:
  1. Build a TrialConfig from defaults, TXBENCH_* env / .env and flags
  2. For each message count, run ``--trials`` trials of the chosen kind:
     a. Acquire conductors and install the chat app
     b. Wait for every active agent to see the others
     c. Inject the burst and measure propagation
     d. Shut every conductor down
  3. Persist results (results/<timestamp>/run_meta.json + Redis)
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import textwrap
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import structlog

from txbench.common.console import C, banner, fail, fmt_duration, info, ok, warn
from txbench.common.constants import RESULTS_DIR
from txbench.common.logging import configure_structlog, get_json_file_logger
from txbench.common.redis import store_run, store_trial_result
from txbench.runner.config import TrialConfig, TrialKind, config_from_env, load_dotenv
from txbench.runner.convergence import TrialResult
from txbench.runner.errors import TrialError
from txbench.runner.platform import Platform
from txbench.runner.trial import run_trial

DEFAULT_PLATFORM = "txbench.runner.simulated:SimulatedPlatform"

PlatformFactory = Callable[[], Platform]


def load_platform_factory(spec: str) -> PlatformFactory:
    """Resolve ``package.module:attribute`` to a zero-argument platform factory."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise TrialError(f"platform must look like 'package.module:Factory', got {spec!r}")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise TrialError(f"cannot load platform {spec!r}: {exc}") from exc


def _message_counts(raw: str) -> list[int]:
    try:
        counts = [int(v) for v in raw.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got {raw!r}")
    if not counts:
        raise argparse.ArgumentTypeError("at least one message count is required")
    return counts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="txbench — gossip / signal propagation trials",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              txbench --local --endpoints none -k gossip -m 20
              txbench -k signal -m 10,20,40 --trials 3 --period 30
        """),
    )
    parser.add_argument("-k", "--kind", choices=[k.value for k in TrialKind], default=None)
    parser.add_argument(
        "-m", "--messages", type=_message_counts, default=None,
        help="Messages per trial; a comma list runs a sweep (e.g. 10,20,40)",
    )
    parser.add_argument("-t", "--trials", type=int, default=1, help="Trials per message count")
    parser.add_argument("--period", type=float, default=None, help="Signal trial deadline (seconds)")
    parser.add_argument(
        "--endpoints", default=None,
        help="Comma-separated worker endpoints, or 'none' for local conductors",
    )
    parser.add_argument("--nodes", type=int, default=None)
    parser.add_argument("--conductors", type=int, default=None)
    parser.add_argument("--instances", type=int, default=None)
    parser.add_argument("--active-agents", type=int, default=None)
    parser.add_argument("--app-source", default=None, help="Path or URL of the app bundle")
    parser.add_argument(
        "--local", action="store_true", default=None,
        help="Share peer info directly instead of relying on network discovery",
    )
    parser.add_argument("--readiness-timeout", type=float, default=None)
    parser.add_argument("--gossip-timeout", type=float, default=None)
    parser.add_argument(
        "--platform", default=DEFAULT_PLATFORM,
        help=f"Platform factory as module:attribute (default: {DEFAULT_PLATFORM})",
    )
    parser.add_argument("--no-redis", action="store_true", help="Skip persisting results in Redis")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def config_from_args(args: argparse.Namespace) -> TrialConfig:
    config = config_from_env()
    endpoints = None
    if args.endpoints is not None:
        endpoints = [] if args.endpoints.lower() == "none" else [
            e.strip() for e in args.endpoints.split(",") if e.strip()
        ]
    return config.with_overrides(
        kind=TrialKind(args.kind) if args.kind else None,
        period=args.period,
        endpoints=endpoints,
        nodes=args.nodes,
        conductors=args.conductors,
        instances=args.instances,
        active_agents=args.active_agents,
        app_source=args.app_source,
        local=args.local,
        readiness_timeout=args.readiness_timeout,
        gossip_timeout=args.gossip_timeout,
    )


async def run_sweep(
    config: TrialConfig,
    message_counts: list[int],
    trials: int,
    platform_factory: PlatformFactory,
    on_result: Callable[[TrialResult], None] | None = None,
) -> list[TrialResult]:
    """Run ``trials`` trials for every message count, each on a fresh platform."""
    results: list[TrialResult] = []
    for messages in message_counts:
        for n in range(1, trials + 1):
            structlog.contextvars.bind_contextvars(messages=messages, trial=n)
            try:
                result = await run_trial(
                    config.kind,
                    config.with_overrides(messages=messages),
                    platform_factory(),
                )
            finally:
                structlog.contextvars.unbind_contextvars("messages", "trial")
            results.append(result)
            if on_result is not None:
                on_result(result)
    return results


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.trials < 1:
        parser.error("--trials must be at least 1")

    configure_structlog(verbose=args.verbose)
    load_dotenv()

    try:
        config = config_from_args(args).validate()
        factory = load_platform_factory(args.platform)
    except TrialError as exc:
        fail(str(exc))
        return
    message_counts = args.messages or [config.messages]

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    results_dir = RESULTS_DIR / timestamp
    results_dir.mkdir(parents=True, exist_ok=True)
    file_log = get_json_file_logger(results_dir / "trial.jsonl")

    # ── Banner ───────────────────────────────────────────────────────────
    banner(f"txbench — {config.kind.value} trials")
    info(f"Endpoints: {len(config.endpoints) or 'local'}  nodes={config.nodes}  "
         f"conductors={config.conductors}  instances={config.instances}")
    info(f"Active agents: {config.active_agents}  messages={message_counts}  trials={args.trials}")
    if config.kind is TrialKind.SIGNAL:
        info(f"Signal period: {config.period:.0f}s")
    if args.platform == DEFAULT_PLATFORM and config.endpoints:
        warn(
            f"Using the in-process simulated platform for {len(config.endpoints)} remote "
            f"endpoint(s); timings are simulated. Pass --platform module:Factory for real conductors."
        )
    print()

    use_redis = not args.no_redis
    if use_redis:
        try:
            store_run(timestamp, {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "timestamp_unix": time.time(),
                "status": "running",
                "config": config.as_dict(),
            })
        except Exception as exc:
            warn(f"Redis unavailable, results only go to {results_dir} ({exc})")
            use_redis = False

    results: list[TrialResult] = []

    def _record(result: TrialResult) -> None:
        results.append(result)
        record = result.as_dict()
        file_log.info("trial_result", **record)
        if result.converged:
            ok(f"{result.kind.value} m={result.messages}: {fmt_duration(result.duration)}")
        else:
            warn(
                f"{result.kind.value} m={result.messages}: {fmt_duration(None)} "
                f"({result.received}/{result.expected}, {result.delivery_pct:.1f}%)"
            )
        if use_redis:
            try:
                store_trial_result(timestamp, record)
            except Exception as exc:
                warn(f"Redis store failed (non-fatal): {exc}")

    error: str | None = None
    try:
        asyncio.run(run_sweep(config, message_counts, args.trials, factory, _record))
    except TrialError as exc:
        error = str(exc)
        file_log.error("trial_aborted", error=error)
    except Exception as exc:
        error = f"{type(exc).__name__}: {exc}"
        file_log.error("trial_aborted", error=error, exc_info=True)
    status = "completed" if error is None else "aborted"

    # ── Write metadata (also for an aborted sweep) ───────────────────────
    meta_file: Path = results_dir / "run_meta.json"
    meta = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status,
        "config": config.as_dict(),
        "message_counts": message_counts,
        "trials": args.trials,
        "results": [r.as_dict() for r in results],
    }
    if error is not None:
        meta["error"] = error
    meta_file.write_text(json.dumps(meta, indent=2))
    ok(f"Metadata saved to {meta_file}")

    if use_redis:
        run_record = {
            "timestamp": meta["timestamp"],
            "timestamp_unix": time.time(),
            "status": status,
            "config": config.as_dict(),
        }
        if error is not None:
            run_record["error"] = error
        try:
            store_run(timestamp, run_record)
        except Exception as exc:
            warn(f"Redis store failed (non-fatal): {exc}")

    if error is not None:
        fail(f"Trial aborted after {len(results)} completed trial(s): {error}")
        return

    # ── Summary ──────────────────────────────────────────────────────────
    converged = sum(1 for r in results if r.converged)
    print()
    print(f"{C.BOLD}  RUN COMPLETE{C.NC}  {converged}/{len(results)} trials converged")
    info(f"Results: {results_dir}")
    info(f"Report:  txbench-report --meta {meta_file}")
