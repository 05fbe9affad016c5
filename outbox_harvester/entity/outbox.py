from __future__ import annotations

import typing
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from outbox_harvester.exceptions import OutboxStateError

EntryId = typing.NewType("EntryId", uuid.UUID)


class OutboxStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not OutboxStatus.PENDING


@dataclass(slots=True, frozen=True)
class OutboxEntry:
    """
    Одна строка outbox: событие, записанное продюсером вместе с бизнес-изменением.

    Экземпляры неизменяемы, переходы состояния возвращают новую запись,
    поэтому несохранённый переход не портит состояние, прочитанное из хранилища.
    """

    id: EntryId
    payload: str
    action: str
    status: OutboxStatus = OutboxStatus.PENDING
    trace_context: Optional[str] = None
    retry_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def mark_processed(self) -> OutboxEntry:
        """
        PENDING -> PROCESSED после успешной публикации.
        """
        self._ensure_pending()
        return replace(self, status=OutboxStatus.PROCESSED)

    def register_failure(self, retry_limit: int) -> OutboxEntry:
        """
        Учитывает неудачную попытку: retry_count + 1, и FAILED при превышении лимита.
        """
        self._ensure_pending()
        retry_count = self.retry_count + 1
        status = OutboxStatus.FAILED if retry_count > retry_limit else OutboxStatus.PENDING
        return replace(self, status=status, retry_count=retry_count)

    def _ensure_pending(self) -> None:
        if self.status.is_terminal:
            raise OutboxStateError(entry_id=self.id, status=self.status)


@dataclass(slots=True)
class NewOutboxEntry:
    action: str
    payload: str
    trace_context: Optional[str] = None


@dataclass(slots=True)
class OutboxFilter:
    status: Optional[OutboxStatus] = None
    action: Optional[str] = None


@dataclass(slots=True)
class Pagination:
    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


class EntryOutcome(str, Enum):
    PROCESSED = "PROCESSED"
    RETRY_SCHEDULED = "RETRY_SCHEDULED"
    FAILED = "FAILED"
    PERSIST_ERROR = "PERSIST_ERROR"


@dataclass(slots=True, frozen=True)
class PublishResult:
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls) -> PublishResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> PublishResult:
        return cls(ok=False, error=error)


@dataclass(slots=True, frozen=True)
class PersistResult:
    ok: bool
    error: Optional[str] = None


@dataclass(slots=True)
class CycleReport:
    """
    Итог одного цикла диспетчеризации.
    """

    fetched: int = 0
    processed: int = 0
    retried: int = 0
    failed: int = 0
    persist_errors: int = 0
    skipped: bool = False
    aborted: bool = False
    error: Optional[str] = None

    def record(self, outcome: EntryOutcome) -> None:
        if outcome is EntryOutcome.PROCESSED:
            self.processed += 1
        elif outcome is EntryOutcome.RETRY_SCHEDULED:
            self.retried += 1
        elif outcome is EntryOutcome.FAILED:
            self.failed += 1
        else:
            self.persist_errors += 1


@dataclass(slots=True)
class OutboxStats:
    pending: int = 0
    processed: int = 0
    failed: int = 0
