"""Shared fixtures: an instrumented simulated platform and fast trial configs."""

from __future__ import annotations

from collections import Counter
from typing import Any

import pytest

from txbench.runner.agent import Agent, NodeHandle
from txbench.runner.config import TrialConfig, TrialKind
from txbench.runner.simulated import SimulatedPlatform


class RecordingPlatform(SimulatedPlatform):
    """SimulatedPlatform that counts calls and can fail chosen zome functions.

    ``fail_calls`` maps a zome function name to how many of its next calls
    raise; ``-1`` fails every call.
    """

    def __init__(self, *, fail_calls: dict[str, int] | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.fail_calls = dict(fail_calls or {})
        self.calls: Counter = Counter()
        self.call_log: list[tuple[str, str]] = []  # (fn_name, agent key)
        self.create_attempts: list[str | None] = []
        self.shutdowns: list[str] = []

    async def create_nodes(self, count: int, endpoint: str | None = None) -> list[NodeHandle]:
        self.create_attempts.append(endpoint)
        return await super().create_nodes(count, endpoint)

    async def shutdown_node(self, node: NodeHandle) -> None:
        self.shutdowns.append(node.node_id)
        await super().shutdown_node(node)

    async def call(self, agent: Agent, fn_name: str, payload: Any) -> Any:
        self.calls[fn_name] += 1
        self.call_log.append((fn_name, agent.agent_key))
        remaining = self.fail_calls.get(fn_name, 0)
        if remaining:
            if remaining > 0:
                self.fail_calls[fn_name] = remaining - 1
            raise RuntimeError(f"injected {fn_name} failure")
        return await super().call(agent, fn_name, payload)


@pytest.fixture
def platform() -> RecordingPlatform:
    return RecordingPlatform(seed=7, gossip_delay=(0.0, 0.01), signal_delay=(0.0, 0.01))


@pytest.fixture
def fast_config() -> TrialConfig:
    """Five local conductors, one agent each, all active, tight poll cadence."""
    return TrialConfig(
        endpoints=[],
        nodes=1,
        conductors=5,
        instances=1,
        active_agents=5,
        app_source="elemental-chat.dna.gz",
        local=True,
        kind=TrialKind.GOSSIP,
        messages=20,
        period=5.0,
        readiness_poll_interval=0.01,
        gossip_poll_interval=0.01,
    )
