from __future__ import annotations

import asyncio
from typing import List, Optional, Protocol

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span

from outbox_harvester.entity.outbox import (CycleReport, EntryOutcome,
                                            OutboxEntry, OutboxStatus,
                                            PersistResult, PublishResult)
from outbox_harvester.infrastructure.messaging.envelope import build_envelope
from outbox_harvester.infrastructure.metrics import OutboxMetrics
from outbox_harvester.logger import logger

DISPATCH_SPAN_NAME = "outbox.dispatch"


class EntryStore(Protocol):
    async def fetch_pending(self) -> List[OutboxEntry]: ...

    async def save(self, entry: OutboxEntry) -> None: ...


class Publisher(Protocol):
    async def publish(self, destination: str, envelope: bytes) -> None: ...


class Propagator(Protocol):
    def extract(self, carrier: Optional[str]) -> Context: ...

    def start_span(self, name: str, parent: Context, attributes=None) -> Span: ...

    def end(self, span: Span) -> None: ...


class OutboxDispatcher:
    """
    Публикует ожидающие записи outbox в брокер и ведёт их статус.

    Один вызов dispatch_cycle - один цикл: выборка PENDING, для каждой записи
    публикация и сохранение исхода. Одновременно активен не более одного
    цикла, повторный вызов во время активного цикла пропускается.
    Доставка at-least-once: публикация и сохранение статуса не атомарны.
    """

    def __init__(
        self,
        store: EntryStore,
        publisher: Publisher,
        propagator: Propagator,
        metrics: OutboxMetrics,
        *,
        destination: str,
        retry_limit: int = 3,
        publish_timeout: float = 10.0,
        store_timeout: float = 10.0,
    ) -> None:
        """
        Зависимости и конфигурация. Таймауты в секундах.
        """
        if retry_limit < 0:
            raise ValueError("retry_limit must be >= 0")
        self._store = store
        self._publisher = publisher
        self._propagator = propagator
        self._metrics = metrics
        self._destination = destination
        self._retry_limit = retry_limit
        self._publish_timeout = publish_timeout
        self._store_timeout = store_timeout
        self._cycle_lock = asyncio.Lock()
        self._stopped = False

    @property
    def retry_limit(self) -> int:
        return self._retry_limit

    @property
    def is_running_cycle(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """
        Запрещает новые циклы. Активный цикл дорабатывает до конца.
        """
        self._stopped = True

    def resume(self) -> None:
        self._stopped = False

    async def wait_idle(self) -> None:
        async with self._cycle_lock:
            return

    async def dispatch_cycle(self) -> CycleReport:
        """
        Один цикл диспетчеризации.

        Ошибка выборки прерывает только этот цикл и не меняет ни одной записи.
        :return: CycleReport со счётчиками исходов.
        """
        if self._stopped:
            logger.debug("Outbox dispatcher is stopped, skipping trigger")
            return CycleReport(skipped=True)

        if self._cycle_lock.locked():
            logger.warning("Outbox dispatch cycle already in progress, skipping trigger")
            return CycleReport(skipped=True)

        async with self._cycle_lock:
            report = CycleReport()
            try:
                entries = await asyncio.wait_for(
                    self._store.fetch_pending(), timeout=self._store_timeout
                )
            except Exception as exc:
                logger.exception("Failed to fetch pending outbox entries: %s", exc)
                report.aborted = True
                report.error = str(exc) or type(exc).__name__
                return report

            report.fetched = len(entries)
            for entry in entries:
                if entry.status is not OutboxStatus.PENDING:
                    logger.warning(
                        "Store returned non-pending outbox entry %s, ignoring",
                        entry.id,
                        extra={"entry_id": str(entry.id), "status": entry.status.value},
                    )
                    continue
                report.record(await self._dispatch_entry(entry))

            if report.fetched:
                logger.info(
                    "Outbox dispatch cycle finished",
                    extra={
                        "fetched": report.fetched,
                        "processed": report.processed,
                        "retried": report.retried,
                        "failed": report.failed,
                        "persist_errors": report.persist_errors,
                    },
                )
            return report

    async def _dispatch_entry(self, entry: OutboxEntry) -> EntryOutcome:
        span = self._open_span(entry)
        try:
            with trace.use_span(span, end_on_exit=False):
                outcome = await self._process(entry)
        except Exception as exc:
            # _process сам превращает ошибки публикации и сохранения в исходы.
            logger.exception("Unexpected error while dispatching outbox entry %s: %s", entry.id, exc)
            outcome = EntryOutcome.PERSIST_ERROR
        self._close_span(span, outcome)
        return outcome

    def _open_span(self, entry: OutboxEntry) -> Span:
        try:
            parent = self._propagator.extract(entry.trace_context)
            return self._propagator.start_span(
                DISPATCH_SPAN_NAME,
                parent,
                attributes={
                    "outbox.entry_id": str(entry.id),
                    "outbox.action": entry.action,
                    "outbox.retry_count": entry.retry_count,
                },
            )
        except Exception as exc:
            logger.debug("Tracing unavailable for outbox entry %s: %s", entry.id, exc)
            return trace.INVALID_SPAN

    def _close_span(self, span: Span, outcome: EntryOutcome) -> None:
        try:
            span.set_attribute("outbox.outcome", outcome.value)
            self._propagator.end(span)
        except Exception as exc:
            logger.debug("Failed to close dispatch span: %s", exc)

    async def _process(self, entry: OutboxEntry) -> EntryOutcome:
        result = await self._publish(entry)
        if result.ok:
            processed = entry.mark_processed()
            persisted = await self._persist(processed)
            if persisted.ok:
                self._metrics.increment_processed()
                logger.debug(
                    "Outbox entry published",
                    extra={"entry_id": str(entry.id), "action": entry.action},
                )
                return EntryOutcome.PROCESSED
            result = PublishResult.failure(f"persist after publish failed: {persisted.error}")

        return await self._handle_failure(entry, result)

    async def _handle_failure(self, entry: OutboxEntry, result: PublishResult) -> EntryOutcome:
        failed = entry.register_failure(self._retry_limit)
        persisted = await self._persist(failed)
        log_extra = {
            "entry_id": str(entry.id),
            "action": entry.action,
            "retry_count": failed.retry_count,
            "error": result.error,
        }
        if not persisted.ok:
            logger.error(
                "Outbox entry %s keeps its stored state, retry bookkeeping was not saved",
                entry.id,
                extra=log_extra,
            )
            return EntryOutcome.PERSIST_ERROR

        if failed.status is OutboxStatus.FAILED:
            self._metrics.increment_failed()
            logger.error(
                "Outbox entry %s exceeded retry limit %s, marked FAILED",
                entry.id,
                self._retry_limit,
                extra=log_extra,
            )
            return EntryOutcome.FAILED

        logger.warning(
            "Failed to publish outbox entry %s, will retry on next cycle",
            entry.id,
            extra=log_extra,
        )
        return EntryOutcome.RETRY_SCHEDULED

    async def _publish(self, entry: OutboxEntry) -> PublishResult:
        try:
            envelope = build_envelope(entry)
            await asyncio.wait_for(
                self._publisher.publish(self._destination, envelope),
                timeout=self._publish_timeout,
            )
        except asyncio.TimeoutError:
            return PublishResult.failure(
                f"publish timed out after {self._publish_timeout}s"
            )
        except Exception as exc:
            return PublishResult.failure(str(exc) or type(exc).__name__)
        return PublishResult.success()

    async def _persist(self, entry: OutboxEntry) -> PersistResult:
        try:
            await asyncio.wait_for(self._store.save(entry), timeout=self._store_timeout)
        except Exception as exc:
            logger.exception(
                "Failed to persist outbox entry %s: %s",
                entry.id,
                exc,
                extra={"entry_id": str(entry.id), "status": entry.status.value},
            )
            return PersistResult(ok=False, error=str(exc) or type(exc).__name__)
        return PersistResult(ok=True)


async def main() -> None:
    """
    Запуск диспетчера как отдельный автономный процесс.
    """
    from outbox_harvester.container import Container
    from outbox_harvester.infrastructure.metrics import start_metrics_server
    from outbox_harvester.infrastructure.tracing import setup_tracing
    from outbox_harvester.settings import settings

    container = Container()
    container.config.from_pydantic(settings)

    setup_tracing(
        settings.OTEL_SERVICE_NAME,
        enabled=settings.OTEL_ENABLED,
        console_export=settings.OTEL_CONSOLE_EXPORT,
    )
    start_metrics_server(settings.METRICS_PORT)

    scheduler = container.messaging.dispatch_scheduler()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.shutdown()
        await container.messaging.publisher().close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
