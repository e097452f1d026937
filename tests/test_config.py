"""Tests for trial configuration layering and validation."""

import os
from pathlib import Path

import pytest

from txbench.common.constants import DEFAULT_ENDPOINTS
from txbench.runner.config import TrialConfig, TrialKind, config_from_env, load_dotenv
from txbench.runner.errors import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("TXBENCH_"):
            monkeypatch.delenv(key)


def test_defaults() -> None:
    config = TrialConfig()
    assert config.endpoints == DEFAULT_ENDPOINTS
    assert config.endpoints is not DEFAULT_ENDPOINTS
    assert config.kind is TrialKind.GOSSIP
    assert config.readiness_timeout is None
    assert config.validate() is config


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TXBENCH_ENDPOINTS", "a:1, b:2")
    monkeypatch.setenv("TXBENCH_ACTIVE_AGENTS", "3")
    monkeypatch.setenv("TXBENCH_PERIOD", "12.5")
    monkeypatch.setenv("TXBENCH_LOCAL", "yes")
    monkeypatch.setenv("TXBENCH_KIND", "SIGNAL")

    config = config_from_env()

    assert config.endpoints == ["a:1", "b:2"]
    assert config.active_agents == 3
    assert config.period == 12.5
    assert config.local is True
    assert config.kind is TrialKind.SIGNAL


def test_env_none_selects_local_conductors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TXBENCH_ENDPOINTS", "none")
    assert config_from_env().endpoints == []


def test_bad_env_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TXBENCH_NODES", "ten")
    with pytest.raises(ConfigError):
        config_from_env()


def test_with_overrides_ignores_none() -> None:
    config = TrialConfig().with_overrides(nodes=None, messages=40, local=False)
    assert config.nodes == TrialConfig().nodes
    assert config.messages == 40


@pytest.mark.parametrize(
    "changes",
    [
        {"messages": 0},
        {"conductors": 0},
        {"kind": TrialKind.SIGNAL, "active_agents": 1},
        {"kind": TrialKind.SIGNAL, "period": 0},
        {"gossip_timeout": -1.0},
        {"app_source": ""},
    ],
)
def test_validate_rejects(changes: dict) -> None:
    with pytest.raises(ConfigError):
        TrialConfig().with_overrides(**changes).validate()


def test_dotenv_does_not_overwrite(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("# comment\nTXBENCH_NODES=4\nTXBENCH_MESSAGES='50'\n")
    monkeypatch.setenv("TXBENCH_NODES", "2")

    load_dotenv(env_file)
    config = config_from_env()
    os.environ.pop("TXBENCH_MESSAGES", None)

    assert config.nodes == 2
    assert config.messages == 50
