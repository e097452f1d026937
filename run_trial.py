#!/usr/bin/env python3
"""
txbench — Trial Runner
======================
Thin entry-point. All logic lives in txbench.runner.cli.

Usage:
    python3 run_trial.py --local --endpoints none -k gossip -m 20
    python3 run_trial.py -k signal -m 10,20,40 --trials 3 --period 30
"""

from txbench.runner.cli import main

if __name__ == "__main__":
    main()
