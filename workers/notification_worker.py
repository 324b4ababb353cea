"""
Notification delivery worker.

Purpose:
- Consume rendered notifications from the RabbitMQ 'notifications' queue
- Hand each one to the chat transport (tools.notifier)
- Run as a separate process (scale horizontally)

Usage:
- python -m workers.notification_worker

Production notes:
- Messages are acked after processing; malformed payloads are logged and dropped
- Implement a dead-letter queue for undeliverable messages
"""
import asyncio
import json
import logging

import aio_pika

from config.settings import settings
from core.logging import configure_logging
from tools import notifier

logger = logging.getLogger(__name__)


class NotificationDeliveryWorker:
    """Worker to deliver notifications from the RabbitMQ queue."""

    def __init__(self):
        self.delivered = 0
        self.failed = 0

    def deliver(self, payload: dict) -> bool:
        """
        Deliver a single notification.

        Args:
            payload: {type, chat_id, message}

        Returns:
            True if delivered, False otherwise
        """
        if not isinstance(payload, dict):
            logger.warning("[worker] Dropping payload that is not an object: %r", payload)
            self.failed += 1
            return False

        if payload.get("type") != "notification":
            logger.info("[worker] Ignoring non-notification message type=%s", payload.get("type"))
            return False

        chat_id = payload.get("chat_id")
        text = payload.get("message")
        if chat_id is None or not text:
            logger.warning("[worker] Missing chat_id or message in payload: %s", payload)
            self.failed += 1
            return False

        result = notifier.send_notification(chat_id, text)
        if result.get("delivered"):
            self.delivered += 1
            return True
        self.failed += 1
        return False

    async def handle_message(self, message: aio_pika.abc.AbstractIncomingMessage) -> None:
        async with message.process():
            try:
                payload = json.loads(message.body.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.warning("[worker] Dropping undecodable message: %s", e)
                self.failed += 1
                return
            self.deliver(payload)

    async def run(self):
        """Connect, consume until cancelled, then disconnect."""
        logger.info("[worker] Connecting to RabbitMQ at %s", settings.RABBITMQ_URL)
        connection = await aio_pika.connect_robust(settings.RABBITMQ_URL)
        try:
            channel = await connection.channel()
            await channel.set_qos(prefetch_count=settings.DELIVERY_BATCH_SIZE)
            queue = await channel.declare_queue(settings.NOTIFICATION_QUEUE, durable=True)
            logger.info("[worker] Waiting for messages in queue '%s'.", settings.NOTIFICATION_QUEUE)
            await queue.consume(self.handle_message)
            await asyncio.Future()
        finally:
            await connection.close()
            logger.info("Worker stopped. Delivered: %s, Failed: %s", self.delivered, self.failed)


async def main():
    configure_logging()
    await NotificationDeliveryWorker().run()


if __name__ == "__main__":
    asyncio.run(main())
