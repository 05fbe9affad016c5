"""
Распространение контекста трассировки через запись outbox.

Продюсер сохраняет W3C traceparent вместе с событием, диспетчер
восстанавливает из него родительский контекст и открывает спан публикации.
Спаны только наблюдательные: их сбой не влияет на исход диспетчеризации.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (BatchSpanProcessor,
                                            ConsoleSpanExporter)
from opentelemetry.trace import Span, Tracer
from opentelemetry.trace.propagation.tracecontext import \
    TraceContextTextMapPropagator

from outbox_harvester.logger import logger

TRACEPARENT_HEADER = "traceparent"

_propagator = TraceContextTextMapPropagator()


class TracePropagator:

    def __init__(self, tracer: Optional[Tracer] = None) -> None:
        self._tracer: Tracer = tracer or trace.get_tracer("outbox_harvester.dispatcher")

    def extract(self, carrier: Optional[str]) -> Context:
        """
        Родительский контекст из traceparent записи.

        Пустой или некорректный carrier даёт контекст без родителя.
        """
        if not carrier:
            return Context()
        try:
            return _propagator.extract({TRACEPARENT_HEADER: carrier}, context=Context())
        except Exception as exc:
            logger.debug("Failed to extract trace context %r: %s", carrier, exc)
            return Context()

    def start_span(
        self,
        name: str,
        parent: Context,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> Span:
        try:
            return self._tracer.start_span(name, context=parent, attributes=attributes)
        except Exception as exc:
            logger.debug("Failed to start span %s: %s", name, exc)
            return trace.INVALID_SPAN

    @staticmethod
    def end(span: Span) -> None:
        try:
            span.end()
        except Exception as exc:
            logger.debug("Failed to end span: %s", exc)


def current_traceparent() -> Optional[str]:
    """
    traceparent активного спана, который продюсер сохраняет в запись outbox.
    """
    carrier: dict[str, str] = {}
    _propagator.inject(carrier)
    return carrier.get(TRACEPARENT_HEADER)


def setup_tracing(
    service_name: str,
    *,
    enabled: bool = True,
    console_export: bool = False,
) -> Optional[TracerProvider]:
    """
    Глобальный TracerProvider процесса. Вызывается один раз при старте.
    """
    if not enabled:
        logger.info("OpenTelemetry tracing is disabled")
        return None

    provider = TracerProvider(resource=Resource(attributes={"service.name": service_name}))
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    logger.info("OpenTelemetry tracing configured", extra={"service": service_name})
    return provider
