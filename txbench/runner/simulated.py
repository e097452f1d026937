"""In-process conductor platform for local runs and tests.

Every conductor lives in the current event loop. Gossip and signal delivery
are modelled as timers with a random delay drawn from a configured range,
so trials exercise the same out-of-order, asynchronous delivery the real
network produces.
"""

from __future__ import annotations

import asyncio
import base64
import random
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from txbench.runner.agent import Agent, NodeHandle
from txbench.runner.platform import (
    AGENT_STATS,
    CREATE_CHANNEL,
    CREATE_MESSAGE,
    LIST_MESSAGES,
    REFRESH_CHATTER,
    SIGNAL_CHATTERS,
    SignalHandler,
)

_APP_ID = "elemental-chat"


@dataclass
class _Conductor:
    handle: NodeHandle
    agents: list[Agent] = field(default_factory=list)
    messages: dict[str, dict[str, dict]] = field(default_factory=dict)  # channel uuid -> msg uuid -> data
    handler: SignalHandler | None = None
    alive: bool = True


class SimulatedPlatform:
    """A :class:`~txbench.runner.platform.Platform` backed by in-memory conductors.

    ``unreachable`` endpoints refuse to start conductors, ``failing_installs``
    names node ids whose app install raises. Delays are ``(low, high)``
    ranges in seconds. ``signal_loss`` is the probability a single signal is
    dropped. Chatters become visible to other conductors after
    ``discovery_delay`` unless :meth:`share_peer_info` was called.
    """

    def __init__(
        self,
        *,
        unreachable: tuple[str, ...] | list[str] = (),
        failing_installs: tuple[str, ...] | list[str] = (),
        gossip_delay: tuple[float, float] = (0.0, 0.05),
        signal_delay: tuple[float, float] = (0.0, 0.05),
        discovery_delay: float = 0.0,
        signal_loss: float = 0.0,
        seed: int | None = None,
    ) -> None:
        self._unreachable = set(unreachable)
        self._failing_installs = set(failing_installs)
        self._gossip_delay = gossip_delay
        self._signal_delay = signal_delay
        self._discovery_delay = discovery_delay
        self._signal_loss = signal_loss
        self._rng = random.Random(seed)
        self._conductors: dict[str, _Conductor] = {}
        self._started_per_endpoint: dict[str, int] = {}
        self._chatters: dict[str, float] = {}  # agent key -> loop time of refresh
        self._shared: set[str] = set()
        self._log = structlog.get_logger("simulated_platform")

    # ── node lifecycle ───────────────────────────────────────────────────────

    @property
    def live_nodes(self) -> list[NodeHandle]:
        return [c.handle for c in self._conductors.values() if c.alive]

    async def create_nodes(self, count: int, endpoint: str | None = None) -> list[NodeHandle]:
        await asyncio.sleep(0)
        if endpoint in self._unreachable:
            raise ConnectionRefusedError(f"worker {endpoint} is unreachable")
        where = endpoint or "local"
        base = self._started_per_endpoint.get(where, 0)
        handles = [NodeHandle(node_id=f"{where}/{base + i}", endpoint=endpoint) for i in range(count)]
        self._started_per_endpoint[where] = base + count
        for handle in handles:
            self._conductors[handle.node_id] = _Conductor(handle=handle)
        return handles

    async def shutdown_node(self, node: NodeHandle) -> None:
        await asyncio.sleep(0)
        conductor = self._conductors.get(node.node_id)
        if conductor is not None:
            conductor.alive = False
            conductor.handler = None

    async def install_app(self, node: NodeHandle, app_source: str, instances: int) -> list[Agent]:
        await asyncio.sleep(0)
        if node.node_id in self._failing_installs:
            raise RuntimeError(f"could not install {app_source} on {node.node_id}")
        conductor = self._live(node)
        agents = [
            Agent(
                agent_key=base64.b64encode(self._rng.randbytes(32)).decode(),
                app_id=f"{_APP_ID}-{len(conductor.agents) + i}",
                node=node,
            )
            for i in range(instances)
        ]
        conductor.agents.extend(agents)
        return agents

    def set_signal_handler(self, node: NodeHandle, handler: SignalHandler) -> None:
        self._live(node).handler = handler

    async def share_peer_info(self, nodes: list[NodeHandle]) -> None:
        await asyncio.sleep(0)
        self._shared.update(node.node_id for node in nodes)

    # ── zome calls ───────────────────────────────────────────────────────────

    async def call(self, agent: Agent, fn_name: str, payload: Any) -> Any:
        await asyncio.sleep(0)
        conductor = self._live(agent.node)
        if fn_name == CREATE_CHANNEL:
            return {"info": {"name": payload["name"]}, "channel": payload["channel"]}
        if fn_name == CREATE_MESSAGE:
            return self._create_message(conductor, agent, payload)
        if fn_name == SIGNAL_CHATTERS:
            return self._signal_chatters(agent, payload)
        if fn_name == LIST_MESSAGES:
            stored = conductor.messages.get(payload["channel"]["uuid"], {})
            return {"messages": list(stored.values())}
        if fn_name == AGENT_STATS:
            visible = sum(1 for key in self._chatters if self._visible(key, agent.node))
            return {"agents": visible, "active": visible}
        if fn_name == REFRESH_CHATTER:
            self._chatters[agent.agent_key] = asyncio.get_running_loop().time()
            return None
        raise ValueError(f"unknown zome function: {fn_name}")

    def _create_message(self, conductor: _Conductor, agent: Agent, payload: dict) -> dict:
        data = {
            "entryHash": str(uuid.uuid4()),
            "createdBy": agent.agent_key,
            "channel": payload["channel"],
            "message": payload["message"],
        }
        channel_uuid = payload["channel"]["uuid"]
        conductor.messages.setdefault(channel_uuid, {})[data["message"]["uuid"]] = data

        loop = asyncio.get_running_loop()
        for other in self._conductors.values():
            if other is conductor or not other.alive:
                continue
            loop.call_later(self._delay(self._gossip_delay), self._gossip, other, channel_uuid, data)
        return data

    def _gossip(self, conductor: _Conductor, channel_uuid: str, data: dict) -> None:
        if conductor.alive:
            conductor.messages.setdefault(channel_uuid, {})[data["message"]["uuid"]] = data

    def _signal_chatters(self, sender: Agent, payload: dict) -> None:
        loop = asyncio.get_running_loop()
        for key in list(self._chatters):
            if key == sender.agent_key:
                continue
            if self._signal_loss and self._rng.random() < self._signal_loss:
                self._log.debug("signal_dropped", recipient=key)
                continue
            loop.call_later(self._delay(self._signal_delay), self._deliver, key, payload)

    def _deliver(self, recipient: str, payload: dict) -> None:
        for conductor in self._conductors.values():
            if not conductor.alive or conductor.handler is None:
                continue
            if any(a.agent_key == recipient for a in conductor.agents):
                conductor.handler(recipient, {"signal_name": "Message", "signal_payload": payload})
                return

    # ── helpers ──────────────────────────────────────────────────────────────

    def _live(self, node: NodeHandle) -> _Conductor:
        conductor = self._conductors.get(node.node_id)
        if conductor is None or not conductor.alive:
            raise ConnectionError(f"conductor {node.node_id} is not running")
        return conductor

    def _visible(self, chatter: str, viewer: NodeHandle) -> bool:
        host = self._host_of(chatter)
        if host == viewer.node_id:
            return True
        if host in self._shared and viewer.node_id in self._shared:
            return True
        now = asyncio.get_running_loop().time()
        return now - self._chatters[chatter] >= self._discovery_delay

    def _host_of(self, agent_key: str) -> str | None:
        for conductor in self._conductors.values():
            if any(a.agent_key == agent_key for a in conductor.agents):
                return conductor.handle.node_id
        return None

    def _delay(self, bounds: tuple[float, float]) -> float:
        low, high = bounds
        return low if high <= low else self._rng.uniform(low, high)
