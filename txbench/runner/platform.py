"""Interface to the conductor platform that hosts the chat app.

The orchestrator never talks to conductors directly; everything goes through
an object satisfying :class:`Platform`. ``txbench.runner.simulated`` ships an
in-process implementation used for local runs and tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from txbench.runner.agent import Agent, NodeHandle

# Chat zome functions called by the orchestrator
CREATE_CHANNEL = "create_channel"
CREATE_MESSAGE = "create_message"
SIGNAL_CHATTERS = "signal_chatters"
LIST_MESSAGES = "list_messages"
AGENT_STATS = "agent_stats"
REFRESH_CHATTER = "refresh_chatter"

# (recipient agent key, opaque signal payload)
SignalHandler = Callable[[str, Any], None]


class Platform(Protocol):
    async def create_nodes(self, count: int, endpoint: str | None = None) -> list[NodeHandle]:
        """Start ``count`` conductors on ``endpoint`` (locally when None)."""
        ...

    async def shutdown_node(self, node: NodeHandle) -> None:
        ...

    async def install_app(self, node: NodeHandle, app_source: str, instances: int) -> list[Agent]:
        """Install ``instances`` copies of the app, one fresh agent key each."""
        ...

    async def call(self, agent: Agent, fn_name: str, payload: Any) -> Any:
        """Call a chat zome function as ``agent``."""
        ...

    def set_signal_handler(self, node: NodeHandle, handler: SignalHandler) -> None:
        """Route every signal arriving at ``node`` to ``handler``."""
        ...

    async def share_peer_info(self, nodes: list[NodeHandle]) -> None:
        """Make every node aware of every other (local mode only)."""
        ...
