from __future__ import annotations

from dataclasses import replace
from typing import List, Tuple
from uuid import UUID

from outbox_harvester.entity.outbox import (NewOutboxEntry, OutboxEntry,
                                            OutboxFilter, OutboxStats,
                                            Pagination)
from outbox_harvester.exceptions import OutboxEntryNotFoundError
from outbox_harvester.infrastructure.metrics import OutboxMetrics
from outbox_harvester.infrastructure.persistence.uow import UnitOfWork
from outbox_harvester.infrastructure.tracing import current_traceparent


class OutboxUseCase:
    """
    Операции продюсера и оператора над таблицей outbox.
    """

    def __init__(self, uow: UnitOfWork, metrics: OutboxMetrics) -> None:
        self._uow = uow
        self._metrics = metrics

    async def record_event(self, entry: NewOutboxEntry) -> OutboxEntry:
        """
        Записывает событие в outbox в статусе PENDING.

        Если traceparent не передан, сохраняется контекст активного спана.
        """
        if entry.trace_context is None:
            entry = replace(entry, trace_context=current_traceparent())
        async with self._uow.init() as repositories:
            return await repositories.outbox.add_entry(entry)

    async def get_entry(self, entry_id: UUID) -> OutboxEntry:
        async with self._uow.init() as repositories:
            entry = await repositories.outbox.get_entry(entry_id)
        if entry is None:
            raise OutboxEntryNotFoundError(entry_id=entry_id)
        return entry

    async def list_entries(
        self,
        filters: OutboxFilter,
        pagination: Pagination,
    ) -> Tuple[List[OutboxEntry], int]:
        async with self._uow.init() as repositories:
            return await repositories.outbox.list_entries(filters, pagination)

    async def stats(self) -> OutboxStats:
        async with self._uow.init() as repositories:
            return await repositories.outbox.count_by_status()

    def render_metrics(self) -> bytes:
        return self._metrics.render()
