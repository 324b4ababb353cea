"""
RabbitMQ client for outbound chat notifications.

Purpose:
- Publish rendered notifications to the 'notifications' queue
- Let workers/notification_worker.py (or any other consumer) hand them to the chat transport

Payload shape:
{
  "type": "notification",
  "chat_id": 42,
  "message": "..."
}

Production notes:
- Queue is durable and messages are persistent
- Implement dead-letter queues (DLQ) for messages the transport rejects
"""
import json
import logging
from typing import Optional

import aio_pika  # async RabbitMQ client

from config.settings import settings
from core.exceptions import DeliveryError

logger = logging.getLogger(__name__)


class RabbitMQClient:
    """Lazily connecting async publisher for the notifications queue."""

    def __init__(self, url: str, queue_name: str = "notifications"):
        self.url = url
        self.queue_name = queue_name
        self._connection: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self._channel: Optional[aio_pika.abc.AbstractChannel] = None

    async def _ensure_connection(self):
        if self._connection and not self._connection.is_closed:
            return
        logger.info("[RabbitMQClient] Connecting to %s", self.url)
        self._connection = await aio_pika.connect_robust(self.url)
        self._channel = await self._connection.channel()
        await self._channel.declare_queue(self.queue_name, durable=True)
        logger.info("[RabbitMQClient] Connected and queue '%s' declared", self.queue_name)

    async def publish_notification(self, chat_id: int, message: str) -> bool:
        """Publish one notification; raises DeliveryError if the broker is unreachable."""
        payload = {"type": "notification", "chat_id": chat_id, "message": message}
        try:
            await self._ensure_connection()
            if self._channel is None:
                raise DeliveryError("RabbitMQ channel is not open", chat_id=chat_id)
            await self._channel.default_exchange.publish(
                aio_pika.Message(
                    body=json.dumps(payload).encode("utf-8"),
                    content_type="application/json",
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                ),
                routing_key=self.queue_name,
            )
        except (aio_pika.AMQPException, ConnectionError, OSError) as e:
            raise DeliveryError(f"RabbitMQ publish failed: {e}", chat_id=chat_id) from e
        logger.debug("[RabbitMQClient] Published notification for chat %s", chat_id)
        return True

    async def send(self, chat_id: int, message: str) -> bool:
        """Sender interface used by NotificationService."""
        return await self.publish_notification(chat_id, message)

    async def disconnect(self):
        if self._connection and not self._connection.is_closed:
            await self._connection.close()
            logger.info("[RabbitMQClient] Disconnected")
        self._connection = None
        self._channel = None


# Singleton instance, used by the notification service when USE_RABBITMQ is set
rabbitmq_client = RabbitMQClient(settings.RABBITMQ_URL, settings.NOTIFICATION_QUEUE)
