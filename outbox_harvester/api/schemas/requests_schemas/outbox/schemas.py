from typing import Optional

from fastapi import Query
from pydantic import BaseModel, Field

from outbox_harvester.entity.outbox import OutboxStatus


class OutboxEntryCreateRequest(BaseModel):
    action: str = Field(..., min_length=1, max_length=255)
    payload: str = Field(..., min_length=1, description="Сериализованное тело события")
    trace_context: Optional[str] = Field(
        None,
        max_length=255,
        description="W3C traceparent продюсера",
    )


class OutboxListFilterQuery(BaseModel):
    status: Optional[OutboxStatus] = None
    action: Optional[str] = None
    page: int = 1
    page_size: int = 20

    @classmethod
    def as_query(
        cls,
        status: Optional[OutboxStatus] = Query(None, alias="status"),
        action: Optional[str] = Query(None, min_length=1, max_length=255),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100),
    ) -> "OutboxListFilterQuery":
        return cls(
            status=status,
            action=action,
            page=page,
            page_size=page_size,
        )
