"""Tests for conductor acquisition across worker endpoints."""

import pytest

from tests.conftest import RecordingPlatform
from txbench.runner.errors import CapacityError
from txbench.runner.pool import WorkerPool

ENDPOINTS = [f"10.0.0.{i}:9000" for i in range(1, 11)]


@pytest.mark.asyncio
async def test_skips_unreachable_endpoints_and_still_meets_target() -> None:
    platform = RecordingPlatform(unreachable=[ENDPOINTS[1], ENDPOINTS[4]])
    pool = WorkerPool(platform, ENDPOINTS, nodes=8, conductors=1)

    nodes = await pool.acquire()

    assert len(nodes) == 8
    assert pool.skipped == [ENDPOINTS[1], ENDPOINTS[4]]
    assert platform.create_attempts == ENDPOINTS
    assert {n.endpoint for n in nodes} == set(ENDPOINTS) - {ENDPOINTS[1], ENDPOINTS[4]}


@pytest.mark.asyncio
async def test_stops_as_soon_as_target_is_reached() -> None:
    platform = RecordingPlatform()
    pool = WorkerPool(platform, ENDPOINTS, nodes=3, conductors=2)

    nodes = await pool.acquire()

    assert len(nodes) == 6
    assert platform.create_attempts == ENDPOINTS[:3]
    assert len(platform.live_nodes) == 6


@pytest.mark.asyncio
async def test_capacity_error_when_endpoints_run_out() -> None:
    platform = RecordingPlatform(unreachable=ENDPOINTS[2:])
    pool = WorkerPool(platform, ENDPOINTS, nodes=5, conductors=1)

    with pytest.raises(CapacityError) as excinfo:
        await pool.acquire()

    assert excinfo.value.acquired == 2
    assert excinfo.value.required == 5
    assert excinfo.value.tried == 10
    # the two conductors that did start are not leaked
    assert sorted(platform.shutdowns) == sorted([f"{ENDPOINTS[0]}/0", f"{ENDPOINTS[1]}/0"])
    assert platform.live_nodes == []


@pytest.mark.asyncio
async def test_all_endpoints_failing() -> None:
    platform = RecordingPlatform(unreachable=ENDPOINTS)
    pool = WorkerPool(platform, ENDPOINTS, nodes=1, conductors=1)

    with pytest.raises(CapacityError):
        await pool.acquire()
    assert pool.skipped == ENDPOINTS


@pytest.mark.asyncio
async def test_local_mode_starts_conductors_without_endpoints() -> None:
    platform = RecordingPlatform()
    pool = WorkerPool(platform, [], nodes=10, conductors=3)

    nodes = await pool.acquire()

    assert len(nodes) == 3
    assert platform.create_attempts == [None]
    assert all(n.endpoint is None for n in nodes)


@pytest.mark.asyncio
async def test_shutdown_releases_every_node_once() -> None:
    platform = RecordingPlatform()
    pool = WorkerPool(platform, ENDPOINTS, nodes=2, conductors=1)
    await pool.acquire()

    await pool.shutdown()
    await pool.shutdown()

    assert len(platform.shutdowns) == 2
    assert pool.nodes == []
