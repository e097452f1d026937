"""Trial sequencing: setup, measurement and guaranteed teardown."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from txbench.runner.agent import Agent, Channel, NodeAgents, NodeHandle
from txbench.runner.config import TrialConfig, TrialKind
from txbench.runner.convergence import ConvergenceDetector, GossipPoller, SignalCollector, TrialResult
from txbench.runner.platform import Platform
from txbench.runner.pool import WorkerPool
from txbench.runner.provisioning import (
    create_channel,
    install_agents,
    refresh_chatters,
    select_active_agents,
)
from txbench.runner.readiness import ReadinessBarrier


@dataclass
class TrialSetup:
    """Everything the measurement phase needs, produced by :func:`setup_trial`."""

    nodes: list[NodeHandle]
    node_agents: NodeAgents
    active: list[Agent]
    channel: Channel


async def setup_trial(platform: Platform, pool: WorkerPool, config: TrialConfig) -> TrialSetup:
    """Acquire conductors, install the app and wait until the peer view converges."""
    log = structlog.get_logger("trial")
    log.info("preparing_playground", target_nodes=pool.target, local=config.local)

    nodes = await pool.acquire()
    node_agents = await install_agents(platform, nodes, config.app_source, config.instances)

    if config.local:
        log.info("share_peer_info_started", nodes=len(nodes))
        await platform.share_peer_info(nodes)
        log.info("share_peer_info_finished")

    channel = await create_channel(platform, node_agents[0][0])
    active = select_active_agents(config.active_agents, node_agents)

    await refresh_chatters(platform, active)
    barrier = ReadinessBarrier(
        platform,
        config.active_agents,
        interval=config.readiness_poll_interval,
        max_wait=config.readiness_timeout,
    )
    await barrier.wait(active)
    return TrialSetup(nodes=nodes, node_agents=node_agents, active=active, channel=channel)


def make_detector(
    kind: TrialKind,
    platform: Platform,
    setup: TrialSetup,
    config: TrialConfig,
) -> ConvergenceDetector:
    if kind is TrialKind.GOSSIP:
        return GossipPoller(
            platform,
            setup.node_agents[0][0],
            setup.channel,
            interval=config.gossip_poll_interval,
            max_wait=config.gossip_timeout,
        )
    return SignalCollector(platform, setup.nodes, setup.channel, period=config.period)


async def run_trial(kind: TrialKind, config: TrialConfig, platform: Platform) -> TrialResult:
    """Run one complete trial of *kind*.

    Fatal setup errors propagate; every conductor started along the way is
    shut down before this returns or raises.
    """
    config = config.with_overrides(kind=kind).validate()
    log = structlog.get_logger("trial").bind(kind=kind.value, messages=config.messages)
    pool = WorkerPool(
        platform,
        config.endpoints,
        nodes=config.nodes,
        conductors=config.conductors,
    )
    try:
        setup = await setup_trial(platform, pool, config)
        detector = make_detector(kind, platform, setup, config)
        result = await detector.detect(setup.active, config.messages)
    finally:
        await pool.shutdown()

    log.info(
        "trial_finished",
        duration=result.duration,
        received=result.received,
        expected=result.expected,
        timed_out=result.timed_out,
    )
    return result
