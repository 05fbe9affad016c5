from __future__ import annotations

from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from outbox_harvester.entity.outbox import (EntryId, NewOutboxEntry,
                                            OutboxEntry, OutboxFilter,
                                            OutboxStats, OutboxStatus,
                                            Pagination)
from outbox_harvester.exceptions import (OutboxFetchError, OutboxPersistError,
                                         RepositoryError)
from outbox_harvester.infrastructure.persistence.db.schema import \
    Outbox as OutboxModel


class OutboxRepository:
    """
    Инкапсуляция операций над таблицей outbox в рамках одной сессии.
    """

    def __init__(self, session: AsyncSession, *, auto_commit: bool = True) -> None:
        self._session = session
        self._auto_commit = auto_commit

    async def add_entry(self, entry: NewOutboxEntry) -> OutboxEntry:
        """
        Новая запись outbox в статусе PENDING.
        """
        try:
            model = OutboxModel(
                payload=entry.payload,
                action=entry.action,
                status=OutboxStatus.PENDING,
                trace_context=entry.trace_context,
                retry_count=0,
            )
            self._session.add(model)
            await self._commit()
            await self._session.refresh(model)
            return self._to_entity(model)
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to add outbox entry") from exc

    async def fetch_pending(self) -> List[OutboxEntry]:
        """
        Выборка ожидающих записей в порядке вставки.
        """
        stmt: Select[Any] = (
            select(OutboxModel)
            .where(OutboxModel.status == OutboxStatus.PENDING)
            .order_by(OutboxModel.created_at.asc())
        )
        try:
            rows = (await self._session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise OutboxFetchError("Failed to fetch pending outbox entries") from exc
        return [self._to_entity(row) for row in rows]

    async def save(self, entry: OutboxEntry) -> None:
        """
        Сохраняет status и retry_count записи.

        Обновляются только строки в статусе PENDING: терминальная запись
        повторно не изменяется.
        """
        stmt = (
            update(OutboxModel)
            .where(OutboxModel.id == entry.id)
            .where(OutboxModel.status == OutboxStatus.PENDING)
            .values(status=entry.status, retry_count=entry.retry_count)
        )
        try:
            result = await self._session.execute(stmt)
            await self._commit()
        except SQLAlchemyError as exc:
            raise OutboxPersistError(entry_id=entry.id) from exc
        if result.rowcount == 0:
            raise OutboxPersistError(
                entry_id=entry.id,
                message="Outbox entry is missing or no longer pending",
            )

    async def get_entry(self, entry_id: UUID) -> Optional[OutboxEntry]:
        try:
            stmt: Select[Any] = select(OutboxModel).where(OutboxModel.id == entry_id)
            model = (await self._session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to get outbox entry") from exc
        return self._to_entity(model) if model else None

    async def list_entries(
        self,
        filters: OutboxFilter,
        pagination: Pagination,
    ) -> Tuple[List[OutboxEntry], int]:
        """
        Постраничный список записей, новые первыми.
        """
        try:
            stmt: Select[Any] = self._apply_filters(select(OutboxModel), filters)
            stmt = stmt.order_by(OutboxModel.created_at.desc())
            stmt = stmt.offset(pagination.offset).limit(pagination.limit)
            rows = (await self._session.execute(stmt)).scalars().all()

            count_stmt: Select[Any] = self._apply_filters(
                select(func.count(OutboxModel.id)), filters
            )
            total = await self._session.scalar(count_stmt)
            return [self._to_entity(row) for row in rows], int(total or 0)
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to list outbox entries") from exc

    async def count_by_status(self) -> OutboxStats:
        try:
            stmt = select(OutboxModel.status, func.count(OutboxModel.id)).group_by(
                OutboxModel.status
            )
            rows = (await self._session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to count outbox entries") from exc
        counts = {OutboxStatus(status): count for status, count in rows}
        return OutboxStats(
            pending=counts.get(OutboxStatus.PENDING, 0),
            processed=counts.get(OutboxStatus.PROCESSED, 0),
            failed=counts.get(OutboxStatus.FAILED, 0),
        )

    @staticmethod
    def _apply_filters(stmt: Select[Any], filters: OutboxFilter) -> Select[Any]:
        if filters.status:
            stmt = stmt.where(OutboxModel.status == filters.status)
        if filters.action:
            stmt = stmt.where(OutboxModel.action == filters.action)
        return stmt

    async def _commit(self) -> None:
        if self._auto_commit:
            await self._session.commit()
        else:
            await self._session.flush()

    @staticmethod
    def _to_entity(model: OutboxModel) -> OutboxEntry:
        return OutboxEntry(
            id=EntryId(model.id),
            payload=model.payload,
            action=model.action,
            status=OutboxStatus(model.status),
            trace_context=model.trace_context,
            retry_count=model.retry_count,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
