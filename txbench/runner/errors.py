"""Exceptions raised while setting up or running a trial."""

from __future__ import annotations


class TrialError(Exception):
    """Base class for errors that abort a trial."""


class ConfigError(TrialError):
    """The trial configuration is inconsistent or out of range."""


class CapacityError(TrialError):
    """Worker endpoints ran out before the requested node count was reached."""

    def __init__(self, acquired: int, required: int, tried: int) -> None:
        super().__init__(
            f"ran out of worker endpoints after contacting {tried}: "
            f"acquired {acquired} of {required} nodes"
        )
        self.acquired = acquired
        self.required = required
        self.tried = tried


class ProvisioningError(TrialError):
    """Installing the app on an acquired node failed."""

    def __init__(self, node_id: str, cause: BaseException) -> None:
        super().__init__(f"app install failed on node {node_id}: {cause}")
        self.node_id = node_id
        self.cause = cause


class ReadinessTimeoutError(TrialError):
    """An active agent never saw the full participant set within the bound."""

    def __init__(self, agent_key: str, seen: int | None, expected: int, waited: float) -> None:
        super().__init__(
            f"agent {agent_key} saw {seen} of {expected} active agents "
            f"after {waited:.1f}s"
        )
        self.agent_key = agent_key
        self.seen = seen
        self.expected = expected
        self.waited = waited


class SetupCallError(TrialError):
    """A chat call made while preparing the trial (channel, chatter refresh) failed."""

    def __init__(self, step: str, agent_key: str, cause: BaseException) -> None:
        super().__init__(f"{step} failed for agent {agent_key}: {cause}")
        self.step = step
        self.agent_key = agent_key
        self.cause = cause
