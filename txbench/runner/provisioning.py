"""App installation, active-set selection and shared channel creation."""

from __future__ import annotations

import asyncio
import uuid

import structlog

from txbench.common.constants import CHANNEL_CATEGORY, CHANNEL_NAME
from txbench.runner.agent import Agent, Channel, NodeAgents, NodeHandle
from txbench.runner.errors import ProvisioningError, SetupCallError
from txbench.runner.platform import CREATE_CHANNEL, REFRESH_CHATTER, Platform


_log = structlog.get_logger("provisioning")


async def install_agents(
    platform: Platform,
    nodes: list[NodeHandle],
    app_source: str,
    instances: int,
) -> NodeAgents:
    """Install the app on every node concurrently; agents come back grouped by node.

    Any failed or short install raises :class:`ProvisioningError`. There is
    no per-node skip: a trial never runs on a partially provisioned pool.
    """

    async def _install(index: int, node: NodeHandle) -> list[Agent]:
        _log.info("installing_app", node=node.node_id, index=index, instances=instances)
        try:
            agents = await platform.install_app(node, app_source, instances)
        except Exception as exc:
            raise ProvisioningError(node.node_id, exc) from exc
        if len(agents) != instances:
            raise ProvisioningError(
                node.node_id,
                RuntimeError(f"expected {instances} agents, got {len(agents)}"),
            )
        return list(agents)

    results = await asyncio.gather(
        *(_install(i, node) for i, node in enumerate(nodes)),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result

    node_agents: NodeAgents = list(results)
    _check_unique_keys(node_agents)
    _log.info("agents_installed", nodes=len(node_agents), agents=sum(map(len, node_agents)))
    return node_agents


def _check_unique_keys(node_agents: NodeAgents) -> None:
    seen: dict[str, str] = {}
    for agents in node_agents:
        for agent in agents:
            if agent.agent_key in seen:
                raise ProvisioningError(
                    agent.node.node_id,
                    RuntimeError(
                        f"agent key {agent.agent_key} already installed on {seen[agent.agent_key]}"
                    ),
                )
            seen[agent.agent_key] = agent.node.node_id


def select_active_agents(count: int, node_agents: NodeAgents) -> list[Agent]:
    """Pick the first *count* agents in node order, then agent order.

    Returns every agent (with a warning) when fewer than *count* exist.
    """
    active: list[Agent] = []
    for agents in node_agents:
        for agent in agents:
            if len(active) == count:
                return active
            active.append(agent)
    if len(active) < count:
        _log.warning("not_enough_agents", requested=count, available=len(active))
    return active


async def create_channel(platform: Platform, creator: Agent) -> Channel:
    """Create the trial's channel as *creator* and return a shared reference."""
    channel = Channel(uuid=str(uuid.uuid4()), category=CHANNEL_CATEGORY, name=CHANNEL_NAME)
    try:
        entry = await platform.call(
            creator,
            CREATE_CHANNEL,
            {"name": channel.name, "channel": channel.as_ref()},
        )
    except Exception as exc:
        raise SetupCallError(CREATE_CHANNEL, creator.agent_key, exc) from exc
    _log.info("channel_created", uuid=channel.uuid, creator=creator.agent_key)
    return Channel(uuid=channel.uuid, category=channel.category, name=channel.name, entry=entry)


async def refresh_chatters(platform: Platform, agents: list[Agent]) -> None:
    """Announce every active agent as a chatter so peers count it as active.

    All calls run to completion; the first failure is raised afterwards as
    :class:`SetupCallError`.
    """
    _log.info("refresh_chatter_started", agents=len(agents))
    results = await asyncio.gather(
        *(platform.call(agent, REFRESH_CHATTER, None) for agent in agents),
        return_exceptions=True,
    )
    failed = [(agent, r) for agent, r in zip(agents, results) if isinstance(r, Exception)]
    for agent, exc in failed:
        _log.error("refresh_chatter_failed", agent=agent.agent_key, error=str(exc))
    if failed:
        agent, exc = failed[0]
        raise SetupCallError(REFRESH_CHATTER, agent.agent_key, exc) from exc
    _log.info("refresh_chatter_finished", agents=len(agents))
