"""
Периодический запуск циклов диспетчеризации через APScheduler.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from outbox_harvester.logger import logger
from outbox_harvester.messaging.outbox_dispatcher import OutboxDispatcher

DISPATCH_JOB_ID = "outbox-dispatch"


class DispatchScheduler:
    """
    Триггер с фиксированным периодом, вызывающий OutboxDispatcher.dispatch_cycle.
    """

    def __init__(self, dispatcher: OutboxDispatcher, *, interval_ms: int = 5000) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._dispatcher = dispatcher
        self._interval_ms = interval_ms
        self._scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": max(1, interval_ms // 1000),
            },
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """
        Должен вызываться из работающего event loop.
        """
        if self._scheduler.running:
            logger.warning("Outbox dispatch scheduler already running")
            return
        self._dispatcher.resume()
        self._scheduler.add_job(
            self._dispatcher.dispatch_cycle,
            IntervalTrigger(seconds=self._interval_ms / 1000),
            id=DISPATCH_JOB_ID,
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self._scheduler.start()
        logger.info(
            "Outbox dispatch scheduler started",
            extra={"interval_ms": self._interval_ms},
        )

    async def shutdown(self) -> None:
        """
        Останавливает триггер и дожидается завершения активного цикла.

        AsyncIOScheduler.shutdown только ставит остановку в очередь event loop,
        поэтому сначала запрещаются новые циклы диспетчера.
        """
        if not self._scheduler.running:
            return
        self._dispatcher.stop()
        self._scheduler.shutdown(wait=False)
        while self._scheduler.running:
            await asyncio.sleep(0)
        await self._dispatcher.wait_idle()
        logger.info("Outbox dispatch scheduler stopped")
