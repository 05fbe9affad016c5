from __future__ import annotations

from dataclasses import replace

import pytest
import pytest_asyncio
from sqlalchemy import text

from outbox_harvester.entity.outbox import (NewOutboxEntry, OutboxFilter,
                                            OutboxStatus, Pagination)
from outbox_harvester.exceptions import OutboxPersistError
from outbox_harvester.infrastructure.persistence.db import Database
from outbox_harvester.infrastructure.persistence.store import OutboxEntryStore
from outbox_harvester.infrastructure.persistence.uow import UnitOfWork
from tests.fakes import TRACEPARENT


@pytest_asyncio.fixture()
async def uow(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'outbox.db'}")
    await db.create_schema()
    yield UnitOfWork(db)
    await db.dispose()


async def _record(uow: UnitOfWork, action: str = "CREATE", trace_context=None):
    async with uow.init() as repositories:
        return await repositories.outbox.add_entry(
            NewOutboxEntry(action=action, payload='{"title":"X"}', trace_context=trace_context)
        )


@pytest.mark.asyncio()
async def test_recorded_entry_is_pending_and_fetched(uow: UnitOfWork) -> None:
    created = await _record(uow, trace_context=TRACEPARENT)
    store = OutboxEntryStore(uow)

    pending = await store.fetch_pending()

    assert [e.id for e in pending] == [created.id]
    assert pending[0].status is OutboxStatus.PENDING
    assert pending[0].retry_count == 0
    assert pending[0].trace_context == TRACEPARENT


@pytest.mark.asyncio()
async def test_saved_processed_entry_is_not_fetched_again(uow: UnitOfWork) -> None:
    created = await _record(uow)
    store = OutboxEntryStore(uow)

    await store.save(created.mark_processed())

    assert await store.fetch_pending() == []


@pytest.mark.asyncio()
async def test_retry_bookkeeping_is_persisted(uow: UnitOfWork) -> None:
    created = await _record(uow)
    store = OutboxEntryStore(uow)

    await store.save(created.register_failure(retry_limit=3))

    (pending,) = await store.fetch_pending()
    assert pending.retry_count == 1
    assert pending.status is OutboxStatus.PENDING


@pytest.mark.asyncio()
async def test_terminal_row_is_never_overwritten(uow: UnitOfWork) -> None:
    created = await _record(uow)
    store = OutboxEntryStore(uow)
    await store.save(replace(created, status=OutboxStatus.FAILED, retry_count=4))

    with pytest.raises(OutboxPersistError):
        await store.save(replace(created, status=OutboxStatus.PROCESSED))

    async with uow.init() as repositories:
        stored = await repositories.outbox.get_entry(created.id)
    assert stored.status is OutboxStatus.FAILED
    assert stored.retry_count == 4


@pytest.mark.asyncio()
async def test_list_and_count_by_status(uow: UnitOfWork) -> None:
    first = await _record(uow, action="CREATE")
    await _record(uow, action="UPDATE")
    await OutboxEntryStore(uow).save(first.mark_processed())

    async with uow.init() as repositories:
        entries, total = await repositories.outbox.list_entries(
            OutboxFilter(status=OutboxStatus.PENDING), Pagination(page=1, page_size=10)
        )
        stats = await repositories.outbox.count_by_status()

    assert total == 1
    assert entries[0].action == "UPDATE"
    assert (stats.pending, stats.processed, stats.failed) == (1, 1, 0)


@pytest.mark.asyncio()
async def test_fetch_pending_returns_every_pending_entry(uow: UnitOfWork) -> None:
    created = [await _record(uow, action=action) for action in ("CREATE", "UPDATE", "DELETE")]

    pending = await OutboxEntryStore(uow).fetch_pending()

    assert len(pending) == 3
    assert {e.id for e in pending} == {e.id for e in created}


@pytest.mark.asyncio()
async def test_database_connection_yields_session(tmp_path) -> None:
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'session.db'}")
    await db.create_schema()
    try:
        async with db.connection() as session:
            assert (await session.execute(text("SELECT 1"))).scalar_one() == 1
    finally:
        await db.dispose()
