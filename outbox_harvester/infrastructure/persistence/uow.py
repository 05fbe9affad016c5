import contextlib
import dataclasses
from collections.abc import AsyncGenerator

from outbox_harvester.exceptions import AppError, UnitOfWorkError
from outbox_harvester.infrastructure.persistence.db import Database
from outbox_harvester.infrastructure.persistence.repositories.outbox import \
    OutboxRepository


@dataclasses.dataclass
class Repository:
    """
    repo доступные для UOW
    """

    outbox: OutboxRepository


class UnitOfWork:
    """
    Обработка жизненного цикла для commit/rollback логики.

    Продюсер вызывает add_entry внутри своего init(), чтобы запись outbox
    фиксировалась в той же транзакции, что и бизнес-изменение.
    """

    def __init__(self, db: Database) -> None:
        self.db: Database = db

    @contextlib.asynccontextmanager
    async def init(self) -> AsyncGenerator[Repository, None]:
        async with self.db.connection() as conn:
            try:
                yield Repository(
                    outbox=OutboxRepository(conn, auto_commit=False),
                )
            except AppError:
                await conn.rollback()
                raise
            except Exception as exc:
                await conn.rollback()
                raise UnitOfWorkError("UnitOfWork transaction failed") from exc
            else:
                await conn.commit()
