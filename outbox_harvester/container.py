"""
Корневой контейнер, который подключает все подконтейнеры.
"""

from dependency_injector import containers, providers

from outbox_harvester.infrastructure.container import InfrastructureContainer
from outbox_harvester.messaging.container import MessagingContainer
from outbox_harvester.usecase.container import UsecaseContainer


class Container(containers.DeclarativeContainer):

    config = providers.Configuration()
    wiring_config = containers.WiringConfiguration(
        modules=["outbox_harvester.api.handlers.outbox.outbox_handler"],
    )

    infrastructure = providers.Container(
        InfrastructureContainer,
        config=config,
    )

    messaging = providers.Container(
        MessagingContainer,
        config=config,
        store=infrastructure.outbox_store,
        metrics=infrastructure.metrics,
        propagator=infrastructure.propagator,
    )

    usecase = providers.Container(
        UsecaseContainer,
        uow=infrastructure.uow,
        metrics=infrastructure.metrics,
    )
