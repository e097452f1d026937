"""Trial configuration: defaults, then environment / .env, then CLI flags."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from txbench.common.console import info
from txbench.common.constants import (
    DEFAULT_ACTIVE_AGENTS,
    DEFAULT_APP_SOURCE,
    DEFAULT_CONDUCTORS,
    DEFAULT_ENDPOINTS,
    DEFAULT_INSTANCES,
    DEFAULT_MESSAGES,
    DEFAULT_NODES,
    DEFAULT_SIGNAL_PERIOD,
    GOSSIP_POLL_INTERVAL,
    PROJECT_ROOT,
    READINESS_POLL_INTERVAL,
)
from txbench.runner.errors import ConfigError

_ENV_PREFIX = "TXBENCH_"


class TrialKind(str, Enum):
    GOSSIP = "gossip"
    SIGNAL = "signal"


@dataclass(frozen=True)
class TrialConfig:
    """Everything needed to run one trial."""

    endpoints: list[str] = field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    nodes: int = DEFAULT_NODES
    conductors: int = DEFAULT_CONDUCTORS
    instances: int = DEFAULT_INSTANCES
    active_agents: int = DEFAULT_ACTIVE_AGENTS
    app_source: str = DEFAULT_APP_SOURCE
    local: bool = False
    kind: TrialKind = TrialKind.GOSSIP
    messages: int = DEFAULT_MESSAGES
    period: float = DEFAULT_SIGNAL_PERIOD
    readiness_poll_interval: float = READINESS_POLL_INTERVAL
    gossip_poll_interval: float = GOSSIP_POLL_INTERVAL
    readiness_timeout: float | None = None
    gossip_timeout: float | None = None

    def with_overrides(self, **overrides) -> TrialConfig:
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> TrialConfig:
        for name in ("nodes", "conductors", "instances", "active_agents", "messages"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.kind is TrialKind.SIGNAL:
            if self.active_agents < 2:
                raise ConfigError("signal trials need at least 2 active agents")
            if self.period <= 0:
                raise ConfigError(f"period must be positive, got {self.period}")
        for name in ("readiness_timeout", "gossip_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigError(f"{name} must be positive when set, got {value}")
        if not self.app_source:
            raise ConfigError("app_source cannot be empty")
        return self

    def as_dict(self) -> dict:
        return {
            "endpoints": list(self.endpoints),
            "nodes": self.nodes,
            "conductors": self.conductors,
            "instances": self.instances,
            "active_agents": self.active_agents,
            "app_source": self.app_source,
            "local": self.local,
            "kind": self.kind.value,
            "messages": self.messages,
            "period": self.period,
        }


def load_dotenv(env_path: Path | None = None) -> None:
    """Load variables from a .env file into os.environ (no overwrite)."""
    env_path = env_path or PROJECT_ROOT / ".env"
    if not env_path.is_file():
        return
    info(f"Loading environment from {env_path}")
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            os.environ.setdefault(key.strip(), value.strip().strip("\"'"))


def _env(name: str) -> str | None:
    value = os.environ.get(_ENV_PREFIX + name, "").strip()
    return value or None


def _parse_bool(raw: str) -> bool:
    return raw.lower() in ("1", "true", "yes", "on")


def config_from_env(base: TrialConfig | None = None) -> TrialConfig:
    """Apply ``TXBENCH_*`` environment variables on top of *base*."""
    base = base or TrialConfig()
    overrides: dict = {}
    try:
        if (raw := _env("ENDPOINTS")) is not None:
            # "none" selects purely local conductors
            overrides["endpoints"] = (
                [] if raw.lower() == "none" else [e.strip() for e in raw.split(",") if e.strip()]
            )
        for name in ("NODES", "CONDUCTORS", "INSTANCES", "ACTIVE_AGENTS", "MESSAGES"):
            if (raw := _env(name)) is not None:
                overrides[name.lower()] = int(raw)
        for name in ("PERIOD", "READINESS_TIMEOUT", "GOSSIP_TIMEOUT"):
            if (raw := _env(name)) is not None:
                overrides[name.lower()] = float(raw)
        if (raw := _env("APP_SOURCE")) is not None:
            overrides["app_source"] = raw
        if (raw := _env("LOCAL")) is not None:
            overrides["local"] = _parse_bool(raw)
        if (raw := _env("KIND")) is not None:
            overrides["kind"] = TrialKind(raw.lower())
    except ValueError as exc:
        raise ConfigError(f"invalid {_ENV_PREFIX}* environment value: {exc}") from exc
    return base.with_overrides(**overrides)
