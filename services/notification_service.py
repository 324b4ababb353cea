# services/notification_service.py
"""
Delivery collaborator for the Dispatch Engine.

- queue(tasks): render NotificationTasks and enqueue (chat_id, text); never blocks, never fails
- a background consumer sends at most DELIVERY_BATCH_SIZE messages per DELIVERY_INTERVAL_SEC
- each send goes through a sender (RabbitMQ publisher or the console notifier) with a timeout

Delivery failures are logged and counted, never retried here and never reported
back to the engine: a session is not "un-seen" because a message failed.
"""
import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Protocol, Tuple

from config.settings import settings
from core.exceptions import DeliveryError
from models.notification import NotificationTask
from tools import messages, notifier

logger = logging.getLogger(__name__)


class Sender(Protocol):
    async def send(self, chat_id: int, message: str) -> object:
        ...


class ConsoleSender:
    """Fallback sender: hands the message to tools.notifier (logs it)."""

    async def send(self, chat_id: int, message: str):
        result = notifier.send_notification(chat_id, message, "console")
        if not result.get("delivered"):
            raise DeliveryError("Notifier did not deliver the message", chat_id=chat_id)
        return result


def default_sender() -> Sender:
    if settings.USE_RABBITMQ:
        from infra.rabbitmq_client import rabbitmq_client
        return rabbitmq_client
    return ConsoleSender()


class NotificationService:
    def __init__(
        self,
        sender: Optional[Sender] = None,
        batch_size: Optional[int] = None,
        interval_sec: Optional[float] = None,
        timeout_sec: Optional[float] = None,
        render: Callable[[List[NotificationTask]], List[Tuple[int, str]]] = messages.render,
    ):
        self.sender = sender or default_sender()
        self.batch_size = batch_size or settings.DELIVERY_BATCH_SIZE
        self.interval_sec = settings.DELIVERY_INTERVAL_SEC if interval_sec is None else interval_sec
        self.timeout_sec = settings.DELIVERY_TIMEOUT_SEC if timeout_sec is None else timeout_sec
        self.render = render
        self._queue: asyncio.Queue[Tuple[int, str]] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self.delivered = 0
        self.failed = 0

    def queue(self, tasks: Iterable[NotificationTask]) -> int:
        """Render and enqueue tasks; returns how many messages were queued."""
        try:
            rendered = self.render(list(tasks))
        except ValueError as e:
            logger.error("Cannot render notifications: %s", e)
            return 0
        for chat_id, text in rendered:
            self._queue.put_nowait((chat_id, text))
        if rendered:
            logger.info("[NotificationService] queued %d notification(s)", len(rendered))
        return len(rendered)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def deliver(self, chat_id: int, text: str) -> bool:
        """Send one message; returns False (and logs) on failure."""
        try:
            await asyncio.wait_for(self.sender.send(chat_id, text), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("Couldn't send message to %s: timed out after %ss", chat_id, self.timeout_sec)
            self.failed += 1
            return False
        except DeliveryError as e:
            logger.warning("Couldn't send message to %s: %s", chat_id, e)
            self.failed += 1
            return False
        except Exception as e:
            logger.exception("Sender crashed for chat %s: %s", chat_id, e)
            self.failed += 1
            return False
        self.delivered += 1
        return True

    async def _next_batch(self) -> List[Tuple[int, str]]:
        batch = [await self._queue.get()]
        while len(batch) < self.batch_size and not self._queue.empty():
            batch.append(self._queue.get_nowait())
        return batch

    async def drain(self) -> None:
        """Send everything currently queued, respecting the batch rate."""
        while not self._queue.empty():
            await self._send_batch(await self._next_batch(), wait=not self._queue.empty())

    async def _send_batch(self, batch: List[Tuple[int, str]], wait: bool = True) -> None:
        for chat_id, text in batch:
            await self.deliver(chat_id, text)
            self._queue.task_done()
        if wait:
            await asyncio.sleep(self.interval_sec)

    async def run(self) -> None:
        logger.info("Notification delivery loop started")
        try:
            while True:
                await self._send_batch(await self._next_batch())
        finally:
            logger.info("Delivery loop stopped. Delivered: %s, Failed: %s", self.delivered, self.failed)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="notification-delivery")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

