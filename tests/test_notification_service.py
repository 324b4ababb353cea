import asyncio

import pytest

from conftest import RecordingSender, make_session
from models.notification import SESSION_MATCHED, SUBSCRIPTION_CONFIRMED, NotificationTask
from models.session import Subscription
from services.notification_service import ConsoleSender, NotificationService
from tools import messages


def sub(subscription_id=1, chat_id=42, name="mine"):
    return Subscription(subscription_id=subscription_id, chat_id=chat_id, court="C1", name=name)


def test_session_info_formats_all_fields():
    text = messages.session_info(make_session(date="2024-01-10", note="public"))
    assert "Wednesday, 10.01.2024, 09:00" in text
    assert "Hall H1" in text
    assert "L1, hearing" in text
    assert "Reference: R1" in text
    assert "Note: public" in text


def test_subscribed_without_sessions():
    text = messages.subscribed("mine", "Court One", [])
    assert "\"mine\"" in text
    assert "Nothing to report" in text


def test_render_groups_matches_per_subscription():
    a, b = sub(1, chat_id=10, name="a"), sub(2, chat_id=20, name="b")
    tasks = [
        NotificationTask(SUBSCRIPTION_CONFIRMED, b, "Court One", sessions=(make_session(),)),
        NotificationTask(SESSION_MATCHED, a, "Court One", session=make_session(reference="R1")),
        NotificationTask(SESSION_MATCHED, b, "Court One", session=make_session(reference="R1")),
        NotificationTask(SESSION_MATCHED, a, "Court One", session=make_session(reference="R2")),
    ]

    rendered = messages.render(tasks)

    assert [chat for chat, _ in rendered] == [20, 10, 20]
    assert "is active" in rendered[0][1]
    assert "Reference: R1" in rendered[1][1] and "Reference: R2" in rendered[1][1]
    assert "Reference: R2" not in rendered[2][1]


def test_render_rejects_unknown_kind():
    with pytest.raises(ValueError):
        messages.render([NotificationTask("bogus", sub(), "Court One")])


@pytest.mark.asyncio
async def test_queue_never_blocks_and_drain_delivers():
    sender = RecordingSender()
    svc = NotificationService(sender=sender, batch_size=2, interval_sec=0)

    queued = svc.queue([
        NotificationTask(SESSION_MATCHED, sub(i, chat_id=i), "Court One", session=make_session())
        for i in range(1, 6)
    ])

    assert queued == 5
    assert svc.pending == 5
    await svc.drain()
    assert svc.pending == 0
    assert [chat for chat, _ in sender.sent] == [1, 2, 3, 4, 5]
    assert svc.delivered == 5


@pytest.mark.asyncio
async def test_failed_delivery_is_counted_not_raised():
    svc = NotificationService(sender=RecordingSender(fail=True), interval_sec=0)
    svc.queue([NotificationTask(SESSION_MATCHED, sub(chat_id=1), "Court One", session=make_session())])

    await svc.drain()

    assert svc.failed == 1
    assert svc.delivered == 0


@pytest.mark.asyncio
async def test_slow_sender_times_out():
    class SlowSender:
        async def send(self, chat_id, message):
            await asyncio.sleep(5)

    svc = NotificationService(sender=SlowSender(), interval_sec=0, timeout_sec=0.01)
    assert await svc.deliver(1, "hello") is False
    assert svc.failed == 1


@pytest.mark.asyncio
async def test_background_loop_delivers_and_stops():
    sender = RecordingSender()
    svc = NotificationService(sender=sender, interval_sec=0)
    svc.start()
    svc.queue([NotificationTask(SESSION_MATCHED, sub(chat_id=7), "Court One", session=make_session())])

    for _ in range(50):
        if sender.sent:
            break
        await asyncio.sleep(0.01)
    await svc.stop()

    assert [chat for chat, _ in sender.sent] == [7]
    assert "Reference: R1" in sender.sent[0][1]


@pytest.mark.asyncio
async def test_console_sender_delivers():
    result = await ConsoleSender().send(3, "hello")
    assert result["delivered"] is True
