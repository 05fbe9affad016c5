"""
Контейнер для usecase слоя
"""

from dependency_injector import containers, providers

from outbox_harvester.infrastructure.metrics import OutboxMetrics
from outbox_harvester.infrastructure.persistence.uow import UnitOfWork
from outbox_harvester.usecase.outbox import OutboxUseCase


class UsecaseContainer(containers.DeclarativeContainer):

    uow: providers.Dependency[UnitOfWork] = providers.Dependency()
    metrics: providers.Dependency[OutboxMetrics] = providers.Dependency()

    outbox_usecase = providers.Factory(
        OutboxUseCase,
        uow=uow,
        metrics=metrics,
    )
