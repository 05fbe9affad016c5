from __future__ import annotations

from typing import List

from sqlalchemy.exc import SQLAlchemyError

from outbox_harvester.entity.outbox import OutboxEntry
from outbox_harvester.exceptions import (OutboxFetchError, OutboxPersistError,
                                         UnitOfWorkError)
from outbox_harvester.infrastructure.persistence.uow import UnitOfWork


class OutboxEntryStore:
    """
    Хранилище записей для диспетчера.

    Каждый вызов идёт в отдельном unit of work: сбой сохранения одной записи
    не откатывает уже зафиксированные переходы соседних записей.
    """

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    async def fetch_pending(self) -> List[OutboxEntry]:
        try:
            async with self._uow.init() as repositories:
                return await repositories.outbox.fetch_pending()
        except (UnitOfWorkError, SQLAlchemyError) as exc:
            raise OutboxFetchError("Failed to fetch pending outbox entries") from exc

    async def save(self, entry: OutboxEntry) -> None:
        try:
            async with self._uow.init() as repositories:
                await repositories.outbox.save(entry)
        except (UnitOfWorkError, SQLAlchemyError) as exc:
            raise OutboxPersistError(entry_id=entry.id) from exc
