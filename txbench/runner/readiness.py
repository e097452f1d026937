"""Readiness barrier: wait until every active agent sees every other one."""

from __future__ import annotations

import asyncio
import time

import structlog

from txbench.runner.agent import Agent
from txbench.runner.errors import ReadinessTimeoutError
from txbench.runner.platform import AGENT_STATS, Platform


class ReadinessBarrier:
    """Polls ``agent_stats`` for each active agent in turn.

    An agent is ready once it reports exactly ``expected`` active chatters.
    Without ``max_wait`` the barrier waits indefinitely; with it, the
    barrier raises :class:`ReadinessTimeoutError` once the whole wait
    exceeds the bound.
    """

    def __init__(
        self,
        platform: Platform,
        expected: int,
        *,
        interval: float,
        max_wait: float | None = None,
    ) -> None:
        self._platform = platform
        self._expected = expected
        self._interval = interval
        self._max_wait = max_wait
        self._log = structlog.get_logger("readiness")

    async def wait(self, agents: list[Agent]) -> float:
        """Block until all *agents* are ready; return the seconds spent."""
        start = time.monotonic()
        self._log.info("find_agents_started", agents=len(agents), expected=self._expected)
        for index, agent in enumerate(agents):
            await self._wait_one(index, agent, start)
        took = time.monotonic() - start
        self._log.info("find_agents_finished", took_seconds=round(took, 3))
        return took

    async def _wait_one(self, index: int, agent: Agent, start: float) -> None:
        seen: int | None = None
        while True:
            try:
                stats = await self._platform.call(agent, AGENT_STATS, None)
                seen = stats.get("agents")
            except Exception as exc:
                self._log.warning("agent_stats_failed", index=index, agent=agent.agent_key, error=repr(exc))
            else:
                self._log.debug("agent_stats", index=index, agent=agent.agent_key, seen=seen)
                if seen == self._expected:
                    return

            waited = time.monotonic() - start
            if self._max_wait is not None and waited >= self._max_wait:
                raise ReadinessTimeoutError(agent.agent_key, seen, self._expected, waited)
            await asyncio.sleep(self._interval)
