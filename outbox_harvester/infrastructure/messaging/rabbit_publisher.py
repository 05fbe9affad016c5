from __future__ import annotations

import asyncio
import contextlib

import aio_pika
from aio_pika import DeliveryMode
from aio_pika.abc import AbstractChannel, AbstractRobustConnection
from aio_pika.exceptions import DeliveryError

from outbox_harvester.exceptions import OutboxPublishError
from outbox_harvester.logger import logger


class RabbitPublisher:
    """
    Публикация конвертов outbox в очереди RabbitMQ с подтверждением брокера.
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractChannel | None = None
        self._declared_queues: set[str] = set()
        self._setup_lock = asyncio.Lock()

    async def publish(self, destination: str, envelope: bytes) -> None:
        channel = await self._ensure_channel(destination)
        await self._ensure_queue(channel, destination)
        try:
            await channel.default_exchange.publish(
                aio_pika.Message(
                    body=envelope,
                    content_type="application/json",
                    delivery_mode=DeliveryMode.PERSISTENT,
                ),
                routing_key=destination,
            )
        except (DeliveryError, aio_pika.AMQPError) as exc:
            logger.exception("Failed to publish envelope to RabbitMQ queue %s", destination)
            await self._reset_connection()
            raise OutboxPublishError(
                destination=destination,
                message=f"Failed to publish envelope to {destination}",
            ) from exc

    async def close(self) -> None:
        await self._reset_connection()

    async def _ensure_channel(self, destination: str) -> AbstractChannel:
        if self._channel and not self._channel.is_closed:
            return self._channel

        async with self._setup_lock:
            if self._connection is None or self._connection.is_closed:
                try:
                    self._connection = await aio_pika.connect_robust(self._url)
                except (aio_pika.AMQPError, OSError) as exc:
                    logger.error("Failed to connect to RabbitMQ: %s", exc)
                    raise OutboxPublishError(
                        destination=destination,
                        message="Failed to connect to RabbitMQ",
                    ) from exc

            if self._channel is None or self._channel.is_closed:
                self._channel = await self._connection.channel(publisher_confirms=True)
                self._declared_queues.clear()

            return self._channel

    async def _ensure_queue(self, channel: AbstractChannel, destination: str) -> None:
        if destination in self._declared_queues:
            return

        async with self._setup_lock:
            if destination in self._declared_queues:
                return
            await channel.declare_queue(destination, durable=True)
            self._declared_queues.add(destination)

    async def _reset_connection(self) -> None:
        async with self._setup_lock:
            if self._channel is not None:
                with contextlib.suppress(Exception):
                    await self._channel.close()
            if self._connection is not None:
                with contextlib.suppress(Exception):
                    await self._connection.close()
            self._channel = None
            self._connection = None
            self._declared_queues.clear()


def get_rabbitmq_url(user: str, password: str, host: str, port: int, vhost: str) -> str:
    vhost = vhost if vhost.startswith("/") else f"/{vhost}"
    return f"amqp://{user}:{password}@{host}:{port}{vhost}"
