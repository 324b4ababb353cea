import logging

logger = logging.getLogger(__name__)


def send_notification(chat_id: int, message: str, channel: str = "console"):
    """
    Deliver a rendered message to a chat.

    - console: log the message (dev / default)

    The chat transport itself is plugged in behind this function; anything other
    than console is reported as not delivered.
    """
    if channel == "console":
        logger.info("[NOTIFY] To %s (%s): %s", chat_id, channel, message)
        return {"chat_id": chat_id, "message": message, "channel": channel, "delivered": True}

    logger.warning("Unknown channel %s, message to %s dropped", channel, chat_id)
    return {"chat_id": chat_id, "message": message, "channel": channel, "delivered": False}
