"""Shared constants for txbench trials."""

from pathlib import Path

# Project root = the checkout containing run_trial.py
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

RESULTS_DIR = PROJECT_ROOT / "results"

# Application bundle installed on every conductor
DEFAULT_APP_SOURCE = str(PROJECT_ROOT / "elemental-chat.dna.gz")

# Remote worker endpoints; an empty list means everything runs locally
DEFAULT_ENDPOINTS: list[str] = [
    "172.26.136.38:9000",
    "172.26.38.158:9000",
    "172.26.37.152:9000",
    "172.26.55.252:9000",
    "172.26.223.202:9000",
    "172.26.160.247:9000",
    "172.26.84.233:9000",
    "172.26.187.15:9000",
    "172.26.201.167:9000",
    "172.26.44.116:9000",
]

# ── Pool shape ───────────────────────────────────────────────────────────────
DEFAULT_NODES = 10             # machines
DEFAULT_CONDUCTORS = 1         # conductors per machine
DEFAULT_INSTANCES = 1          # app instances per conductor
DEFAULT_ACTIVE_AGENTS = 5      # agents that chat during a trial

# ── Trial parameters ─────────────────────────────────────────────────────────
DEFAULT_MESSAGES = 20
DEFAULT_SIGNAL_PERIOD = 60.0   # seconds allowed for all signals to arrive

# ── Polling cadence (seconds) ────────────────────────────────────────────────
READINESS_POLL_INTERVAL = 2.0
GOSSIP_POLL_INTERVAL = 0.2

# ── Channel shared by every participant ──────────────────────────────────────
CHANNEL_CATEGORY = "General"
CHANNEL_NAME = "Test Channel"
