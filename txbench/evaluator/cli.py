"""CLI entrypoint for the report script."""

from __future__ import annotations

import argparse

from txbench.evaluator.report import run_all_runs, run_meta


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Summarize txbench trial results.",
        epilog="Single run: %(prog)s --meta FILE  |  All runs: %(prog)s --all-runs",
    )
    parser.add_argument(
        "--meta",
        metavar="FILE",
        default=None,
        help="Path to run_meta.json written by the runner",
    )
    parser.add_argument(
        "--all-runs",
        action="store_true",
        default=False,
        help="Query Redis for ALL stored runs and produce a cross-run report",
    )
    parser.add_argument("-o", "--output", default=None, help="Path to write the raw JSON summary")
    parser.add_argument("--plot", metavar="PNG", default=None, help="Write a latency chart")
    args = parser.parse_args(argv)

    if args.all_runs:
        run_all_runs(args.output, args.plot)
    elif args.meta:
        run_meta(args.meta, args.output, args.plot)
    else:
        parser.error("Provide --all-runs or --meta FILE.")
