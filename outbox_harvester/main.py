import contextlib
from collections.abc import AsyncIterator

import fastapi

from outbox_harvester.api.handlers.outbox.outbox_handler import (
    metrics_router, router)
from outbox_harvester.container import Container
from outbox_harvester.infrastructure.tracing import setup_tracing
from outbox_harvester.settings import settings


def create_container() -> Container:
    container = Container()
    container.config.from_pydantic(settings)
    return container


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
    """
    Встроенный диспетчер: запускается вместе с API, если включён в настройках.
    """
    setup_tracing(
        settings.OTEL_SERVICE_NAME,
        enabled=settings.OTEL_ENABLED,
        console_export=settings.OTEL_CONSOLE_EXPORT,
    )
    scheduler = None
    if settings.OUTBOX_EMBEDDED_DISPATCHER:
        scheduler = app.container.messaging.dispatch_scheduler()
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.shutdown()
            await app.container.messaging.publisher().close()


def create_app() -> fastapi.FastAPI:
    app = fastapi.FastAPI(lifespan=lifespan)
    app.container = create_container()
    app.include_router(router)
    app.include_router(metrics_router)
    return app


app = create_app()
