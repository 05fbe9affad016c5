from outbox_harvester.usecase.outbox.outbox_usecase import OutboxUseCase

__all__ = ["OutboxUseCase"]
