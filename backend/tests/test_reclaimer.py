"""
Expiry reclaimer tests: sweeps, failure handling, and task lifecycle.
"""

import asyncio
from datetime import timedelta

import pytest

from seatkeeper.core.exceptions import StorageUnavailable
from seatkeeper.services.memory_registry import InMemorySeatRegistry
from seatkeeper.services.reclaimer import ExpiryReclaimer


class BrokenRegistry(InMemorySeatRegistry):
    """Registry whose sweeps fail the first `failures` times."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures

    async def bulk_reclaim(self, now):
        if self.failures > 0:
            self.failures -= 1
            raise StorageUnavailable("bulk_reclaim", ConnectionError("db down"))
        return await super().bulk_reclaim(now)


@pytest.mark.asyncio
async def test_sweep_reclaims_only_expired(memory_registry, clock):
    await memory_registry.apply_hold("W01", "user-a", clock() + timedelta(hours=1))
    await memory_registry.apply_hold("W02", "user-b", clock() + timedelta(hours=4))
    reclaimer = ExpiryReclaimer(memory_registry, clock=clock)

    assert await reclaimer.sweep_once() == 0

    clock.advance(hours=2)
    assert await reclaimer.sweep_once() == 1
    assert (await memory_registry.find_by_seat_number("W01")).is_available is True
    assert (await memory_registry.find_by_seat_number("W02")).current_user == "user-b"


@pytest.mark.asyncio
async def test_sweep_at_exact_deadline_keeps_hold(memory_registry, clock):
    await memory_registry.apply_hold("W01", "user-a", clock() + timedelta(hours=1))
    clock.advance(hours=1)

    reclaimer = ExpiryReclaimer(memory_registry, clock=clock)
    assert await reclaimer.sweep_once() == 0
    assert (await memory_registry.find_by_seat_number("W01")).is_available is False


@pytest.mark.asyncio
async def test_sweep_failure_is_swallowed(clock):
    registry = BrokenRegistry(failures=1)
    await registry.bulk_reinitialize({})
    reclaimer = ExpiryReclaimer(registry, clock=clock)

    assert await reclaimer.sweep_once() is None
    # Next tick retries and works
    assert await reclaimer.sweep_once() == 0


@pytest.mark.asyncio
async def test_on_reclaimed_callback(memory_registry, clock):
    counts = []

    async def on_reclaimed(count):
        counts.append(count)

    await memory_registry.apply_hold("W01", "user-a", clock() + timedelta(minutes=30))
    await memory_registry.apply_hold("W02", "user-b", clock() + timedelta(minutes=45))
    reclaimer = ExpiryReclaimer(memory_registry, clock=clock, on_reclaimed=on_reclaimed)

    await reclaimer.sweep_once()
    clock.advance(hours=1)
    await reclaimer.sweep_once()
    await reclaimer.sweep_once()

    assert counts == [2]


@pytest.mark.asyncio
async def test_failing_callback_does_not_fail_sweep(memory_registry, clock):
    async def on_reclaimed(count):
        raise RuntimeError("cache down")

    await memory_registry.apply_hold("W01", "user-a", clock() + timedelta(minutes=30))
    clock.advance(hours=1)
    reclaimer = ExpiryReclaimer(memory_registry, clock=clock, on_reclaimed=on_reclaimed)

    assert await reclaimer.sweep_once() == 1


@pytest.mark.asyncio
async def test_start_sweeps_immediately_and_stop(memory_registry, clock):
    """Holds that expired while the process was down are cleared at start."""
    await memory_registry.apply_hold("W03", "user-a", clock() - timedelta(minutes=5))
    reclaimer = ExpiryReclaimer(memory_registry, interval_seconds=3600, clock=clock)

    await reclaimer.start()
    try:
        assert reclaimer.running
        assert (await memory_registry.find_by_seat_number("W03")).is_available is True
    finally:
        await reclaimer.stop()

    assert not reclaimer.running
    # Stopping twice is harmless
    await reclaimer.stop()


@pytest.mark.asyncio
async def test_periodic_ticks(memory_registry, clock):
    reclaimed = asyncio.Event()

    async def on_reclaimed(count):
        reclaimed.set()

    reclaimer = ExpiryReclaimer(
        memory_registry, interval_seconds=0.01, clock=clock, on_reclaimed=on_reclaimed
    )
    await reclaimer.start()
    try:
        await memory_registry.apply_hold("W04", "user-a", clock() + timedelta(hours=1))
        clock.advance(hours=2)
        await asyncio.wait_for(reclaimed.wait(), timeout=2)
    finally:
        await reclaimer.stop()

    assert (await memory_registry.find_by_seat_number("W04")).is_available is True


@pytest.mark.asyncio
async def test_periodic_loop_survives_failures(clock):
    registry = BrokenRegistry(failures=3)
    await registry.bulk_reinitialize({})
    reclaimer = ExpiryReclaimer(registry, interval_seconds=0.01, clock=clock)

    await reclaimer.start()
    try:
        for _ in range(100):
            if registry.failures == 0:
                break
            await asyncio.sleep(0.01)
        assert registry.failures == 0
        assert reclaimer.running
    finally:
        await reclaimer.stop()


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        ExpiryReclaimer(InMemorySeatRegistry(), interval_seconds=0)


class CountingRegistry(InMemorySeatRegistry):
    """Registry that counts sweeps and yields to the loop inside each one."""

    def __init__(self):
        super().__init__()
        self.sweeps = 0

    async def bulk_reclaim(self, now):
        self.sweeps += 1
        await asyncio.sleep(0)
        return await super().bulk_reclaim(now)


@pytest.mark.asyncio
async def test_overlapping_starts_create_one_task(clock):
    registry = CountingRegistry()
    reclaimer = ExpiryReclaimer(registry, interval_seconds=3600, clock=clock)

    await asyncio.gather(reclaimer.start(), reclaimer.start())
    try:
        tasks = [t for t in asyncio.all_tasks() if t.get_name() == "seat-expiry-reclaimer"]
        assert len(tasks) == 1
        assert registry.sweeps == 1
        assert reclaimer.running
    finally:
        await reclaimer.stop()

    assert all(t.done() for t in tasks)
