"""Concurrent message injection across the active agents."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field

import structlog

from txbench.runner.agent import Agent, Channel
from txbench.runner.platform import CREATE_MESSAGE, SIGNAL_CHATTERS, Platform


@dataclass
class InjectionReport:
    """Outcome of one injection burst."""

    requested: int
    created: int = 0
    signalled: int = 0
    failures: list[tuple[int, str]] = field(default_factory=list)  # (message index, error)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def as_dict(self) -> dict:
        return {
            "requested": self.requested,
            "created": self.created,
            "signalled": self.signalled,
            "failed": self.failed,
        }


class LoadInjector:
    """Sends ``messages`` chat messages round-robin over the active agents.

    Every send is started before any is awaited, then the whole batch is
    joined. A failing send is recorded in the report and never cancels its
    siblings.
    """

    def __init__(self, platform: Platform, channel: Channel, *, signal: bool) -> None:
        self._platform = platform
        self._channel = channel
        self._signal = signal
        self._log = structlog.get_logger("injector")

    async def send_one(self, index: int, agent: Agent, report: InjectionReport) -> None:
        msg = {
            "last_seen": {"First": None},
            "channel": self._channel.as_ref(),
            "message": {"uuid": str(uuid.uuid4()), "content": f"message {index}"},
            "chunk": 0,
        }
        self._log.debug("creating_message", index=index, agent=agent.agent_key)
        message_data = await self._platform.call(agent, CREATE_MESSAGE, msg)
        report.created += 1

        if self._signal:
            self._log.debug("signalling_chatters", index=index)
            await self._platform.call(
                agent,
                SIGNAL_CHATTERS,
                {"messageData": message_data, "channelData": self._channel.entry},
            )
            report.signalled += 1

    async def send_concurrently(self, agents: list[Agent], messages: int) -> InjectionReport:
        report = InjectionReport(requested=messages)
        if not agents:
            self._log.warning("no_active_agents", messages=messages)
            return report

        sends = [
            self.send_one(i, agents[i % len(agents)], report)
            for i in range(messages)
        ]
        results = await asyncio.gather(*sends, return_exceptions=True)
        for index, result in enumerate(results):
            if isinstance(result, Exception):
                report.failures.append((index, repr(result)))
                self._log.error("send_failed", index=index, error=repr(result))

        self._log.info("injection_finished", signal=self._signal, **report.as_dict())
        return report
