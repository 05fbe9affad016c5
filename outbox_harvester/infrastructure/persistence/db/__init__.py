"""
Подключение к БД: async engine SQLAlchemy и фабрика сессий.
"""

import contextlib
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class Database:

    def __init__(self, db_url: str, *, echo: bool = False) -> None:
        self._engine: AsyncEngine = create_async_engine(db_url, echo=echo)
        self._session_factory = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

    @contextlib.asynccontextmanager
    async def connection(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._session_factory() as session:
            yield session

    async def create_schema(self) -> None:
        """
        Создаёт таблицы по метаданным ORM (для тестов и локального запуска).
        """
        from outbox_harvester.infrastructure.persistence.db import schema  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()
