from __future__ import annotations

import os
import sys
from typing import Any

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import \
    InMemorySpanExporter
from prometheus_client import CollectorRegistry

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from outbox_harvester.infrastructure.metrics import OutboxMetrics
from outbox_harvester.infrastructure.tracing import TracePropagator
from outbox_harvester.main import create_app
from outbox_harvester.messaging.outbox_dispatcher import OutboxDispatcher
from tests.fakes import (FakeOutboxUseCase, InMemoryEntryStore,
                         ScriptedPublisher)


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture()
def propagator(span_exporter: InMemorySpanExporter) -> TracePropagator:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return TracePropagator(tracer=provider.get_tracer("tests"))


@pytest.fixture()
def metrics() -> OutboxMetrics:
    return OutboxMetrics(CollectorRegistry())


@pytest.fixture()
def make_dispatcher(propagator: TracePropagator, metrics: OutboxMetrics):
    def factory(
        store: InMemoryEntryStore,
        publisher: ScriptedPublisher,
        **kwargs: Any,
    ) -> OutboxDispatcher:
        kwargs.setdefault("destination", "outboxQueue")
        kwargs.setdefault("retry_limit", 3)
        return OutboxDispatcher(
            store=store,
            publisher=publisher,
            propagator=kwargs.pop("propagator", propagator),
            metrics=metrics,
            **kwargs,
        )

    return factory


@pytest.fixture()
def fake_outbox_usecase() -> FakeOutboxUseCase:
    return FakeOutboxUseCase()


@pytest.fixture()
def api_client(fake_outbox_usecase: FakeOutboxUseCase) -> TestClient:
    app = create_app()
    app.container.usecase.outbox_usecase.override(providers.Object(fake_outbox_usecase))

    with TestClient(app) as client:
        yield client

    app.container.usecase.outbox_usecase.reset_override()
