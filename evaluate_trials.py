#!/usr/bin/env python3
"""
txbench — Trial Report
======================
Thin entry-point. All logic lives in txbench.evaluator.

Modes:
  Single run:   python3 evaluate_trials.py --meta results/<ts>/run_meta.json
  All runs:     python3 evaluate_trials.py --all-runs --plot latency.png
"""

from txbench.evaluator.cli import main

if __name__ == "__main__":
    main()
