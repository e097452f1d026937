"""Conductor pool acquisition across remote worker endpoints."""

from __future__ import annotations

import asyncio

import structlog

from txbench.runner.agent import NodeHandle
from txbench.runner.errors import CapacityError
from txbench.runner.platform import Platform


class WorkerPool:
    """Owns every conductor started for one trial.

    Usage::

        pool = WorkerPool(platform, endpoints, nodes=10, conductors=1)
        try:
            nodes = await pool.acquire()
            ...
        finally:
            await pool.shutdown()
    """

    def __init__(
        self,
        platform: Platform,
        endpoints: list[str],
        *,
        nodes: int,
        conductors: int,
    ) -> None:
        self._platform = platform
        self._endpoints = list(endpoints)
        self._nodes = nodes
        self._conductors = conductors
        self._held: list[NodeHandle] = []
        self._skipped: list[str] = []
        self._log = structlog.get_logger("worker_pool")

    @property
    def nodes(self) -> list[NodeHandle]:
        return list(self._held)

    @property
    def skipped(self) -> list[str]:
        """Endpoints that failed to start conductors during acquisition."""
        return list(self._skipped)

    @property
    def target(self) -> int:
        if not self._endpoints:
            return self._conductors
        return self._nodes * self._conductors

    async def acquire(self) -> list[NodeHandle]:
        """Start conductors until the target is met.

        Raises :class:`CapacityError` when the endpoint list runs out first;
        conductors already started are shut down before raising.
        """
        if not self._endpoints:
            started = await self._platform.create_nodes(self._conductors)
            self._held.extend(started)
            self._log.info("local_nodes_started", count=len(started))
            return self.nodes

        tried = 0
        for endpoint in self._endpoints:
            if len(self._held) >= self.target:
                break
            tried += 1
            want = min(self._conductors, self.target - len(self._held))
            try:
                started = await self._platform.create_nodes(want, endpoint)
            except Exception as exc:
                self._skipped.append(endpoint)
                self._log.warning("endpoint_skipped", endpoint=endpoint, error=repr(exc))
                continue
            self._held.extend(started)
            self._log.info(
                "endpoint_acquired",
                endpoint=endpoint,
                started=len(started),
                held=len(self._held),
                target=self.target,
            )

        if len(self._held) < self.target:
            acquired = len(self._held)
            await self.shutdown()
            raise CapacityError(acquired=acquired, required=self.target, tried=tried)
        return self.nodes

    async def shutdown(self) -> None:
        """Shut down every held conductor; failures are logged, not raised."""
        if not self._held:
            return
        held, self._held = self._held, []
        results = await asyncio.gather(
            *(self._platform.shutdown_node(node) for node in held),
            return_exceptions=True,
        )
        for node, result in zip(held, results):
            if isinstance(result, Exception):
                self._log.error("node_shutdown_failed", node=node.node_id, error=repr(result))
        self._log.info("nodes_shut_down", count=len(held))
