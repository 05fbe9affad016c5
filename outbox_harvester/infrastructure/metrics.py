"""
Счётчики Prometheus для исходов диспетчеризации outbox.
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import (CollectorRegistry, Counter, generate_latest,
                               start_http_server)

# Реестр процесса: создаётся один раз, читается эндпоинтом /metrics.
REGISTRY = CollectorRegistry()


class OutboxMetrics:
    """
    Монотонные счётчики processed/failed.

    Счётчики prometheus_client потокобезопасны.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self.registry = registry
        self._processed = Counter(
            "outbox_events_processed",
            "Outbox entries published and marked PROCESSED",
            registry=registry,
        )
        self._failed = Counter(
            "outbox_events_failed",
            "Outbox entries that exhausted retries and were marked FAILED",
            registry=registry,
        )

    def increment_processed(self) -> None:
        self._processed.inc()

    def increment_failed(self) -> None:
        self._failed.inc()

    @property
    def processed(self) -> float:
        return self.registry.get_sample_value("outbox_events_processed_total") or 0.0

    @property
    def failed(self) -> float:
        return self.registry.get_sample_value("outbox_events_failed_total") or 0.0

    def render(self) -> bytes:
        return generate_latest(self.registry)


def start_metrics_server(port: int, registry: CollectorRegistry = REGISTRY) -> Optional[int]:
    if port <= 0:
        return None
    start_http_server(port, registry=registry)
    return port


_metrics: Optional[OutboxMetrics] = None


def get_outbox_metrics() -> OutboxMetrics:
    """
    Единственный экземпляр счётчиков процесса, создаётся при первом обращении.
    """
    global _metrics
    if _metrics is None:
        _metrics = OutboxMetrics(REGISTRY)
    return _metrics
