"""
Court -> subscriptions index.

Lookups are plain dict access by court name, so their cost does not grow with
the number of subscriptions on other courts. An entry is refreshed from the
subscription collaborator at the start of every pass for that court.
"""
import logging
from typing import Awaitable, Callable, Dict, List

from models.session import Subscription

logger = logging.getLogger(__name__)

ListActive = Callable[[str], Awaitable[List[Subscription]]]


class SubscriptionIndex:
    def __init__(self):
        self._by_court: Dict[str, List[Subscription]] = {}

    async def refresh(self, court: str, list_active: ListActive) -> None:
        """Replace the court's entry with what the collaborator returns now."""
        subs = list(await list_active(court))
        if subs:
            self._by_court[court] = subs
        else:
            self._by_court.pop(court, None)
        logger.debug("%s: %d subscription(s) indexed", court, len(subs))

    def subscriptions_for(self, court: str) -> List[Subscription]:
        return list(self._by_court.get(court, ()))
