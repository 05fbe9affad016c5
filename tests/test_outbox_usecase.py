from __future__ import annotations

from uuid import uuid4

import pytest
from opentelemetry.sdk.trace import TracerProvider
from prometheus_client import CollectorRegistry

from outbox_harvester.entity.outbox import NewOutboxEntry
from outbox_harvester.exceptions import OutboxEntryNotFoundError
from outbox_harvester.infrastructure.metrics import OutboxMetrics
from outbox_harvester.usecase.outbox import OutboxUseCase


class FakeOutboxRepository:
    def __init__(self) -> None:
        self.added: list[NewOutboxEntry] = []

    async def add_entry(self, entry):
        self.added.append(entry)
        return entry

    async def get_entry(self, entry_id):
        return None


class FakeUnitOfWork:
    def __init__(self) -> None:
        self.repositories = type("Repositories", (), {"outbox": FakeOutboxRepository()})()

    class _Context:
        def __init__(self, repositories):
            self._repositories = repositories

        async def __aenter__(self):
            return self._repositories

        async def __aexit__(self, exc_type, exc, tb):
            return False

    def init(self):
        return self._Context(self.repositories)


def _usecase(uow: FakeUnitOfWork) -> OutboxUseCase:
    return OutboxUseCase(uow=uow, metrics=OutboxMetrics(CollectorRegistry()))


@pytest.mark.asyncio()
async def test_record_event_captures_active_trace_context() -> None:
    uow = FakeUnitOfWork()
    tracer = TracerProvider().get_tracer("tests")

    with tracer.start_as_current_span("create-movie") as span:
        await _usecase(uow).record_event(NewOutboxEntry(action="CREATE", payload="{}"))

    (added,) = uow.repositories.outbox.added
    assert added.trace_context is not None
    assert format(span.get_span_context().trace_id, "032x") in added.trace_context


@pytest.mark.asyncio()
async def test_record_event_keeps_explicit_trace_context() -> None:
    uow = FakeUnitOfWork()
    explicit = "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"

    await _usecase(uow).record_event(
        NewOutboxEntry(action="CREATE", payload="{}", trace_context=explicit)
    )

    assert uow.repositories.outbox.added[0].trace_context == explicit


@pytest.mark.asyncio()
async def test_get_entry_raises_not_found_when_absent() -> None:
    with pytest.raises(OutboxEntryNotFoundError):
        await _usecase(FakeUnitOfWork()).get_entry(uuid4())


@pytest.mark.asyncio()
async def test_record_event_does_not_mutate_callers_entry() -> None:
    uow = FakeUnitOfWork()
    tracer = TracerProvider().get_tracer("tests")
    new_entry = NewOutboxEntry(action="CREATE", payload="{}")

    with tracer.start_as_current_span("create-movie"):
        await _usecase(uow).record_event(new_entry)

    assert new_entry.trace_context is None
    assert uow.repositories.outbox.added[0].trace_context is not None
