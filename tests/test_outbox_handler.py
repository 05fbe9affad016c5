from __future__ import annotations

import pytest
from fastapi import HTTPException

from outbox_harvester.api.handlers.outbox.outbox_handler import (
    _map_app_error_to_http, get_entry, get_stats, list_entries, record_entry)
from outbox_harvester.api.schemas.requests_schemas.outbox.schemas import (
    OutboxEntryCreateRequest, OutboxListFilterQuery)
from outbox_harvester.entity.outbox import NewOutboxEntry, OutboxStatus
from outbox_harvester.exceptions import (OutboxEntryNotFoundError,
                                         OutboxStateError, RepositoryError)


@pytest.mark.asyncio()
async def test_record_entry_uses_usecase_only(fake_outbox_usecase) -> None:
    body = OutboxEntryCreateRequest(
        action="CREATE",
        payload='{"title":"X"}',
        trace_context=None,
    )

    response = await record_entry(body=body, uc=fake_outbox_usecase)

    assert len(fake_outbox_usecase.recorded) == 1
    recorded = fake_outbox_usecase.recorded[0]
    assert recorded.action == "CREATE"
    assert recorded.payload == '{"title":"X"}'
    assert response.status == OutboxStatus.PENDING
    assert response.retry_count == 0


@pytest.mark.asyncio()
async def test_list_entries_returns_empty_list_when_no_entries(fake_outbox_usecase) -> None:
    filters = OutboxListFilterQuery(page=1, page_size=10, status=None, action=None)

    response = await list_entries(uc=fake_outbox_usecase, filters=filters)

    assert response.total == 0
    assert response.items == []


@pytest.mark.asyncio()
async def test_get_entry_not_found_raises_404(fake_outbox_usecase) -> None:
    with pytest.raises(HTTPException) as exc_info:
        await get_entry(entry_id="00000000-0000-0000-0000-000000000000", uc=fake_outbox_usecase)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio()
async def test_get_stats_counts_pending_entries(fake_outbox_usecase) -> None:
    await fake_outbox_usecase.record_event(NewOutboxEntry(action="CREATE", payload="{}"))

    response = await get_stats(uc=fake_outbox_usecase)

    assert response.pending == 1
    assert response.processed == 0
    assert response.failed == 0


def test_app_errors_map_to_http_status_codes() -> None:
    not_found = OutboxEntryNotFoundError(entry_id="00000000-0000-0000-0000-000000000000")

    assert _map_app_error_to_http(not_found)[0] == 404
    assert _map_app_error_to_http(RepositoryError("boom")) == (500, "Database error")
    assert _map_app_error_to_http(OutboxStateError(entry_id="x", status="FAILED"))[0] == 500
