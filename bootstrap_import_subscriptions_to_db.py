import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import BaseModel, ValidationError

from core.db import async_session_maker, create_all
from core.logging import configure_logging
from services.subscription_db_service import SubscriptionDBService

logger = logging.getLogger(__name__)


class SubscriptionSeed(BaseModel):
    chat_id: int
    court: str
    name: str
    date_filter: str = "*"
    reference_filter: str = ""


async def import_subscriptions(path: Path, session_maker=None) -> int:
    """
    Import subscriptions from a JSON array of
    {chat_id, court, name, date_filter?, reference_filter?} objects.
    Existing (chat_id, name) pairs are skipped. Returns the number imported.
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    if session_maker is None:
        await create_all()
        session_maker = async_session_maker

    imported = 0
    async with session_maker() as session:
        svc = SubscriptionDBService(session)
        for entry in raw:
            try:
                seed = SubscriptionSeed.model_validate(entry)
            except ValidationError as e:
                logger.error("[bootstrap-subscriptions] Invalid entry %s: %s", entry, e)
                continue
            res = await svc.add_subscription(**seed.model_dump())
            if res.get("error"):
                logger.info("[bootstrap-subscriptions] Skipped %s:%s -> %s", seed.chat_id, seed.name, res["error"])
            else:
                logger.info("[bootstrap-subscriptions] Imported %s:%s (%s)", seed.chat_id, seed.name, seed.court)
                imported += 1
    return imported


async def main(argv: list[str]):
    if len(argv) != 1:
        print("usage: python bootstrap_import_subscriptions_to_db.py subscriptions.json")
        raise SystemExit(2)
    configure_logging()
    count = await import_subscriptions(Path(argv[0]))
    print(f"✅ Imported {count} subscription(s).")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:]))
