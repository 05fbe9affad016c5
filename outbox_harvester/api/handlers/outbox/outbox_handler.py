from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST

from outbox_harvester.api.schemas.requests_schemas.outbox.schemas import (
    OutboxEntryCreateRequest, OutboxListFilterQuery)
from outbox_harvester.api.schemas.response_schemas.schemas import (
    OutboxEntryResponse, OutboxListResponse, OutboxStatsResponse)
from outbox_harvester.container import Container
from outbox_harvester.entity.outbox import (NewOutboxEntry, OutboxFilter,
                                            Pagination)
from outbox_harvester.exceptions import (AppError, MessagingError,
                                         OutboxEntryNotFoundError,
                                         RepositoryError)
from outbox_harvester.logger import logger
from outbox_harvester.usecase.outbox import OutboxUseCase

router = APIRouter(
    prefix="/api/v1",
    tags=["Outbox"],
)

metrics_router = APIRouter(tags=["Metrics"])


def _map_app_error_to_http(exc: AppError) -> tuple[int, str]:
    if isinstance(exc, OutboxEntryNotFoundError):
        return status.HTTP_404_NOT_FOUND, "Outbox entry not found"
    if isinstance(exc, MessagingError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Messaging error"
    if isinstance(exc, RepositoryError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error"
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"


def _raise_http_from_app_error(operation: str, exc: AppError) -> None:
    status_code, detail = _map_app_error_to_http(exc)

    log_extra = {
        "error_type": type(exc).__name__,
        **getattr(exc, "context", {}),
    }

    message = "Application error in %s: %s"

    if 400 <= status_code < 500:
        logger.warning(message, operation, str(exc), extra=log_extra)
    else:
        # 5xx и все остальные - ошибки сервера
        logger.error(message, operation, str(exc), extra=log_extra)

    raise HTTPException(status_code=status_code, detail=detail) from exc


@router.post(
    "/outbox/entries",
    response_model=OutboxEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
@inject
async def record_entry(
    body: OutboxEntryCreateRequest,
    uc: OutboxUseCase = Depends(Provide[Container.usecase.outbox_usecase]),
) -> OutboxEntryResponse:
    """
    Записать событие в outbox.
    :param body: action, payload и необязательный traceparent.
    :param uc: usecase с бизнес-логикой
    :return: OutboxEntryResponse в статусе PENDING
    """

    new_entry = NewOutboxEntry(
        action=body.action,
        payload=body.payload,
        trace_context=body.trace_context,
    )
    try:
        entry = await uc.record_event(new_entry)
    except AppError as exc:
        _raise_http_from_app_error("record_entry", exc)

    return OutboxEntryResponse.from_entity(entry)


@router.get(
    "/outbox/entries",
    response_model=OutboxListResponse,
)
@inject
async def list_entries(
    uc: OutboxUseCase = Depends(Provide[Container.usecase.outbox_usecase]),
    filters: OutboxListFilterQuery = Depends(OutboxListFilterQuery.as_query),
) -> OutboxListResponse:
    """
    Список записей outbox с фильтрами и пагинацией.
    """

    entry_filters = OutboxFilter(
        status=filters.status,
        action=filters.action.strip() if filters.action else None,
    )
    pagination = Pagination(page=filters.page, page_size=filters.page_size)
    try:
        entries, total = await uc.list_entries(entry_filters, pagination)
    except AppError as exc:
        _raise_http_from_app_error("list_entries", exc)

    return OutboxListResponse(
        total=total,
        page=filters.page,
        page_size=filters.page_size,
        items=[OutboxEntryResponse.from_entity(entry) for entry in entries],
    )


@router.get(
    "/outbox/entries/{entry_id}",
    response_model=OutboxEntryResponse,
)
@inject
async def get_entry(
    entry_id: UUID,
    uc: OutboxUseCase = Depends(Provide[Container.usecase.outbox_usecase]),
) -> OutboxEntryResponse:
    try:
        entry = await uc.get_entry(entry_id)
    except AppError as exc:
        _raise_http_from_app_error("get_entry", exc)

    return OutboxEntryResponse.from_entity(entry)


@router.get(
    "/outbox/stats",
    response_model=OutboxStatsResponse,
)
@inject
async def get_stats(
    uc: OutboxUseCase = Depends(Provide[Container.usecase.outbox_usecase]),
) -> OutboxStatsResponse:
    """
    Количество записей outbox по статусам.
    """
    try:
        stats = await uc.stats()
    except AppError as exc:
        _raise_http_from_app_error("get_stats", exc)

    return OutboxStatsResponse.from_entity(stats)


@metrics_router.get("/metrics", include_in_schema=False)
@inject
async def metrics(
    uc: OutboxUseCase = Depends(Provide[Container.usecase.outbox_usecase]),
) -> Response:
    return Response(content=uc.render_metrics(), media_type=CONTENT_TYPE_LATEST)
