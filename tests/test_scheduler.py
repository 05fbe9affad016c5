from __future__ import annotations

import asyncio

import pytest

from outbox_harvester.entity.outbox import OutboxStatus
from outbox_harvester.messaging.scheduler import DispatchScheduler
from tests.fakes import (InMemoryEntryStore, ScriptedPublisher,
                         entry_with_id_payload)


@pytest.mark.asyncio()
async def test_scheduler_runs_dispatch_cycles_until_shutdown(make_dispatcher) -> None:
    entry = entry_with_id_payload()
    store = InMemoryEntryStore([entry])
    dispatcher = make_dispatcher(store, ScriptedPublisher())
    scheduler = DispatchScheduler(dispatcher, interval_ms=20)

    scheduler.start()
    assert scheduler.running
    await asyncio.sleep(0.2)
    await scheduler.shutdown()

    assert not scheduler.running
    assert store.fetch_calls >= 2
    assert store.entries[entry.id].status is OutboxStatus.PROCESSED

    calls = store.fetch_calls
    await asyncio.sleep(0.1)
    assert store.fetch_calls == calls


def test_scheduler_rejects_non_positive_interval(make_dispatcher) -> None:
    with pytest.raises(ValueError):
        DispatchScheduler(
            make_dispatcher(InMemoryEntryStore(), ScriptedPublisher()),
            interval_ms=0,
        )


@pytest.mark.asyncio()
async def test_shutdown_waits_for_in_flight_cycle_and_stops_triggers(make_dispatcher) -> None:
    entry = entry_with_id_payload()
    store = InMemoryEntryStore([entry])
    publisher = ScriptedPublisher()
    publisher.gate = asyncio.Event()
    scheduler = DispatchScheduler(make_dispatcher(store, publisher), interval_ms=20)

    scheduler.start()
    await asyncio.wait_for(publisher.started.wait(), timeout=1)
    stopping = asyncio.create_task(scheduler.shutdown())
    await asyncio.sleep(0.05)
    assert not stopping.done()

    publisher.gate.set()
    await asyncio.wait_for(stopping, timeout=1)

    assert not scheduler.running
    assert store.entries[entry.id].status is OutboxStatus.PROCESSED
    calls = store.fetch_calls
    await asyncio.sleep(0.1)
    assert store.fetch_calls == calls
