# models/notification.py
from dataclasses import dataclass
from typing import Literal, Optional, Tuple

from models.session import Session, Subscription

SESSION_MATCHED = "session_matched"
SUBSCRIPTION_CONFIRMED = "subscription_confirmed"


@dataclass(frozen=True)
class NotificationTask:
    """
    One outbound notification produced by a pass.

    - session_matched: `session` is the added session that matched the subscription
    - subscription_confirmed: `sessions` lists the court's current sessions matching it
    """
    kind: Literal["session_matched", "subscription_confirmed"]
    subscription: Subscription
    court_name: str  # display name of the court
    session: Optional[Session] = None
    sessions: Tuple[Session, ...] = ()

    @property
    def chat_id(self) -> int:
        return self.subscription.chat_id
