from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Исключение базового уровня приложения.

    Должно использоваться для всех ожидаемых, контролируемых сценариев ошибок в
    приложении.
    """
    def __init__(self, message: str = "", *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context or {}

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message or self.__class__.__name__


class RepositoryError(AppError):
    """
    Базовая класс ошибок для persistence/repository слоя.
    """


class OutboxFetchError(RepositoryError):
    """
    Не удалось выбрать ожидающие записи outbox. Прерывает только текущий цикл.
    """


@dataclass
class OutboxPersistError(RepositoryError):
    """
    Не удалось сохранить состояние записи outbox.
    """

    entry_id: Any
    message: str = "Failed to persist outbox entry"

    def __post_init__(self) -> None:
        self.context = {"entry_id": str(self.entry_id)}


class UnitOfWorkError(AppError):
    """
    Ошибка для UOW при которой падает транзакция
    """


class MessagingError(AppError):
    """
    Базовый класс ошибок для messaging / RabbitMQ операций.
    """


@dataclass
class OutboxPublishError(MessagingError):
    """
    Возникает, когда сообщение не может быть опубликовано в брокер.
    """

    destination: str
    message: str = "Failed to publish outbox envelope"

    def __post_init__(self) -> None:
        self.context = {"destination": self.destination}


class OutboxError(AppError):
    """
    Базовый класс ошибок для outbox-операций.
    """


@dataclass
class OutboxEntryNotFoundError(OutboxError):
    """
    Возникает, когда запись с заданным UUID не существует.
    """

    entry_id: Any
    message: str = "Outbox entry not found"

    def __post_init__(self) -> None:
        self.context = {"entry_id": str(self.entry_id)}


@dataclass
class OutboxStateError(OutboxError):
    """
    Попытка изменить запись в терминальном статусе.
    """

    entry_id: Any
    status: Any
    message: str = "Outbox entry is in a terminal status"

    def __post_init__(self) -> None:
        self.context = {
            "entry_id": str(self.entry_id),
            "status": str(self.status),
        }
