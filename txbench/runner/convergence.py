"""Convergence detection: poll-based (gossip) and push-based (signal).

Both detectors inject the load themselves so the clock starts the instant
sending begins, and both return a :class:`TrialResult`.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from txbench.runner.agent import Agent, Channel, NodeHandle
from txbench.runner.config import TrialKind
from txbench.runner.injector import InjectionReport, LoadInjector
from txbench.runner.platform import LIST_MESSAGES, Platform


@dataclass(frozen=True)
class TrialResult:
    """Outcome of one trial. ``duration`` is None when it did not converge."""

    kind: TrialKind
    messages: int
    active_agents: int
    duration: float | None
    expected: int
    received: int
    timed_out: bool = False
    injection: dict = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return self.duration is not None

    @property
    def delivery_pct(self) -> float:
        return self.received / self.expected * 100 if self.expected else 0.0

    def as_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "messages": self.messages,
            "active_agents": self.active_agents,
            "duration": self.duration,
            "expected": self.expected,
            "received": self.received,
            "timed_out": self.timed_out,
            "delivery_pct": round(self.delivery_pct, 1),
            "injection": self.injection,
        }


class ConvergenceDetector(Protocol):
    async def detect(self, agents: list[Agent], messages: int) -> TrialResult:
        """Inject ``messages`` from ``agents`` and wait for full propagation."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
#  Gossip: poll the receiving agent's message count
# ═══════════════════════════════════════════════════════════════════════════════


class GossipPoller:
    """Polls ``list_messages`` on one receiving agent until all messages arrive.

    Query errors are logged and polling continues at the same cadence with
    no retry limit. Logging is edge-triggered: only count changes are
    reported. ``max_wait`` (seconds since sending began) bounds the loop;
    without it an unconverged trial polls forever.
    """

    def __init__(
        self,
        platform: Platform,
        receiver: Agent,
        channel: Channel,
        *,
        interval: float,
        max_wait: float | None = None,
    ) -> None:
        self._platform = platform
        self._receiver = receiver
        self._channel = channel
        self._interval = interval
        self._max_wait = max_wait
        self._injector = LoadInjector(platform, channel, signal=False)
        self._log = structlog.get_logger("gossip_poller")

    async def count_messages(self) -> int:
        response = await self._platform.call(
            self._receiver,
            LIST_MESSAGES,
            {
                "channel": self._channel.as_ref(),
                "active_chatter": False,
                "chunk": {"start": 0, "end": 1},
            },
        )
        return len(response["messages"])

    async def detect(self, agents: list[Agent], messages: int) -> TrialResult:
        start = time.monotonic()
        report = await self._injector.send_concurrently(agents, messages)
        self._log.info("polling_receiver", receiver=self._receiver.agent_key, expected=messages)

        received = 0
        while True:
            observed = received
            try:
                observed = await self.count_messages()
            except Exception as exc:
                self._log.error("message_count_failed", error=repr(exc))

            elapsed = time.monotonic() - start
            if observed != received:
                received = observed
                self._log.info("receiver_progress", elapsed_ms=round(elapsed * 1000), received=received)
                if received >= messages:
                    if received > messages:
                        self._log.warning("receiver_overshoot", received=received, expected=messages)
                    return self._result(agents, messages, elapsed, received, report)
                continue

            if self._max_wait is not None and elapsed >= self._max_wait:
                self._log.warning(
                    "gossip_timed_out",
                    waited_seconds=round(elapsed, 3),
                    received=received,
                    expected=messages,
                )
                return self._result(agents, messages, None, received, report, timed_out=True)
            await asyncio.sleep(self._interval)

    def _result(
        self,
        agents: list[Agent],
        messages: int,
        duration: float | None,
        received: int,
        report: InjectionReport,
        timed_out: bool = False,
    ) -> TrialResult:
        return TrialResult(
            kind=TrialKind.GOSSIP,
            messages=messages,
            active_agents=len(agents),
            duration=duration,
            expected=messages,
            received=received,
            timed_out=timed_out,
            injection=report.as_dict(),
        )


# ═══════════════════════════════════════════════════════════════════════════════
#  Signal: count pushed notifications per recipient
# ═══════════════════════════════════════════════════════════════════════════════


class ReceiptTally:
    """Signals received per recipient, plus a running total.

    Only mutated from signal handlers on the event loop thread. The
    completion check runs inside :meth:`record`, in the same callback as
    the increment that reaches the expected total.
    """

    def __init__(
        self,
        expected: int,
        recipients: list[str],
        on_complete: Callable[[float], None],
    ) -> None:
        self.expected = expected
        self.counts: dict[str, int] = {key: 0 for key in recipients}
        self.total = 0
        self.completed_at: float | None = None
        self._on_complete = on_complete
        self._over_reported = False
        self._log = structlog.get_logger("receipt_tally")

    def record(self, recipient: str) -> None:
        self.counts[recipient] = self.counts.get(recipient, 0) + 1
        self.total += 1
        self.check_completion()

    def check_completion(self) -> None:
        if self.total == self.expected and self.completed_at is None:
            self.completed_at = time.monotonic()
            self._on_complete(self.completed_at)
        elif self.total > self.expected and not self._over_reported:
            self._over_reported = True
            self._log.warning("signal_over_delivery", total=self.total, expected=self.expected)


class SignalCollector:
    """Races full signal delivery against a fixed deadline.

    Handlers are registered on every node before sending. The deadline
    timer starts together with sending; whichever of the deadline and the
    completion of the tally comes first decides the result.
    """

    def __init__(
        self,
        platform: Platform,
        nodes: list[NodeHandle],
        channel: Channel,
        *,
        period: float,
    ) -> None:
        self._platform = platform
        self._nodes = nodes
        self._period = period
        self._injector = LoadInjector(platform, channel, signal=True)
        self._log = structlog.get_logger("signal_collector")
        self.tally: ReceiptTally | None = None

    def _handler(self, tally: ReceiptTally, node: NodeHandle) -> Callable[[str, Any], None]:
        def on_signal(recipient: str, payload: Any) -> None:
            tally.record(recipient)
            self._log.debug("signal_received", node=node.node_id, recipient=recipient, total=tally.total)

        return on_signal

    async def detect(self, agents: list[Agent], messages: int) -> TrialResult:
        # the sender of a message does not receive its own signal
        expected = messages * (len(agents) - 1)
        loop = asyncio.get_running_loop()
        all_receipts: asyncio.Future[float] = loop.create_future()
        deadline: asyncio.Future[int] = loop.create_future()

        # exactly one of the two futures resolves; the first callback wins
        def _complete(at: float) -> None:
            if not deadline.done() and not all_receipts.done():
                all_receipts.set_result(at)

        def _expire() -> None:
            # snapshot the count in the timer callback itself
            if not all_receipts.done() and not deadline.done():
                deadline.set_result(tally.total)

        tally = ReceiptTally(expected, [a.agent_key for a in agents], _complete)
        self.tally = tally
        for node in self._nodes:
            self._platform.set_signal_handler(node, self._handler(tally, node))

        if expected == 0:
            self._log.warning("signal_trial_insufficient_agents", agents=len(agents))
            report = InjectionReport(requested=messages)
            return self._result(agents, messages, None, tally, report)

        start = time.monotonic()
        self._log.info("sending_started", messages=messages, expected_signals=expected)
        timer = loop.call_later(self._period, _expire)
        try:
            report = await self._injector.send_concurrently(agents, messages)
            self._log.info("sending_finished", elapsed_ms=round((time.monotonic() - start) * 1000))
            await asyncio.wait({all_receipts, deadline}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()

        if deadline.done():
            # count as of the deadline; late receipts do not rescue the trial
            received = deadline.result()
            self._log.warning(
                "signal_deadline_elapsed",
                period_seconds=self._period,
                active_agents=len(agents),
                messages=messages,
                expected=expected,
                received=received,
                pct=round(received / expected * 100, 1),
            )
            return self._result(agents, messages, None, tally, report, timed_out=True, received=received)

        self._log.info("all_signals_received", received=tally.total)
        return self._result(agents, messages, all_receipts.result() - start, tally, report)

    def _result(
        self,
        agents: list[Agent],
        messages: int,
        duration: float | None,
        tally: ReceiptTally,
        report: InjectionReport,
        timed_out: bool = False,
        received: int | None = None,
    ) -> TrialResult:
        return TrialResult(
            kind=TrialKind.SIGNAL,
            messages=messages,
            active_agents=len(agents),
            duration=duration,
            expected=tally.expected,
            received=tally.total if received is None else received,
            timed_out=timed_out,
            injection=report.as_dict(),
        )
