from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from outbox_harvester.entity.outbox import OutboxEntry, OutboxStats, OutboxStatus


class OutboxEntryResponse(BaseModel):
    id: UUID
    action: str
    payload: str
    status: OutboxStatus
    trace_context: Optional[str]
    retry_count: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @staticmethod
    def from_entity(entry: OutboxEntry) -> "OutboxEntryResponse":
        return OutboxEntryResponse(
            id=entry.id,
            action=entry.action,
            payload=entry.payload,
            status=entry.status,
            trace_context=entry.trace_context,
            retry_count=entry.retry_count,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class OutboxListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[OutboxEntryResponse]


class OutboxStatsResponse(BaseModel):
    pending: int
    processed: int
    failed: int

    @staticmethod
    def from_entity(stats: OutboxStats) -> "OutboxStatsResponse":
        return OutboxStatsResponse(
            pending=stats.pending,
            processed=stats.processed,
            failed=stats.failed,
        )
