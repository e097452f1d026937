"""Node, agent and channel data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class NodeHandle:
    """A running conductor process reachable through one worker endpoint."""

    node_id: str                   # e.g. "172.26.136.38:9000/0", "local/2"
    endpoint: str | None = None    # None for conductors started locally


@dataclass(frozen=True)
class Agent:
    """One installed app instance: an identity bound to a node."""

    agent_key: str                 # base64 agent public key, unique per trial
    app_id: str                    # installed app id on the conductor
    node: NodeHandle = field(compare=False)


# Agents grouped by the node that hosts them, in acquisition order.
NodeAgents = list[list[Agent]]


@dataclass(frozen=True)
class Channel:
    """The shared chat channel every participant posts into.

    ``entry`` is the opaque channel record returned by ``create_channel``;
    it is passed back untouched when signalling chatters.
    """

    uuid: str
    category: str
    name: str
    entry: Any = None

    def as_ref(self) -> dict[str, str]:
        return {"category": self.category, "uuid": self.uuid}
