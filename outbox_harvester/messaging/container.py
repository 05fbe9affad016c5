"""
Контейнер для диспетчера outbox и брокера
"""

from dependency_injector import containers, providers

from outbox_harvester.infrastructure.messaging.rabbit_publisher import (
    RabbitPublisher, get_rabbitmq_url)
from outbox_harvester.infrastructure.metrics import OutboxMetrics
from outbox_harvester.infrastructure.persistence.store import OutboxEntryStore
from outbox_harvester.infrastructure.tracing import TracePropagator
from outbox_harvester.messaging.outbox_dispatcher import OutboxDispatcher
from outbox_harvester.messaging.scheduler import DispatchScheduler


def ms_to_seconds(value: int) -> float:
    return value / 1000


class MessagingContainer(containers.DeclarativeContainer):
    config = providers.Configuration()

    store: providers.Dependency[OutboxEntryStore] = providers.Dependency()
    metrics: providers.Dependency[OutboxMetrics] = providers.Dependency()
    propagator: providers.Dependency[TracePropagator] = providers.Dependency()

    publisher = providers.Singleton(
        RabbitPublisher,
        url=providers.Callable(
            get_rabbitmq_url,
            user=config.RABBIT_USER,
            password=config.RABBIT_PASS,
            host=config.RABBIT_HOST,
            port=config.RABBIT_PORT,
            vhost=config.RABBIT_VHOST,
        ),
    )

    dispatcher = providers.Singleton(
        OutboxDispatcher,
        store=store,
        publisher=publisher,
        propagator=propagator,
        metrics=metrics,
        destination=config.OUTBOX_DESTINATION,
        retry_limit=config.OUTBOX_RETRY_LIMIT,
        publish_timeout=providers.Callable(ms_to_seconds, config.OUTBOX_PUBLISH_TIMEOUT_MS),
        store_timeout=providers.Callable(ms_to_seconds, config.OUTBOX_STORE_TIMEOUT_MS),
    )

    dispatch_scheduler = providers.Singleton(
        DispatchScheduler,
        dispatcher=dispatcher,
        interval_ms=config.OUTBOX_POLL_INTERVAL_MS,
    )
