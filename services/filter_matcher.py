"""
Subscription filter evaluation.

Filter syntax:
- date_filter: "*" or "" matches any date; otherwise an ISO date (YYYY-MM-DD).
  DD.MM.YYYY is accepted as well and normalized to ISO.
- reference_filter: "" or "*" matches any reference; otherwise a case-sensitive
  glob over the whole reference: "*" is any run of characters, "?" exactly one
  character, everything else literal.

matches() never raises: a malformed filter matches nothing, so one broken
subscription cannot block the others.
"""
import logging
import re
from datetime import date, datetime
from functools import lru_cache
from typing import Callable, Optional

from core.exceptions import FilterError
from models.session import Session, Subscription

logger = logging.getLogger(__name__)

WILDCARD = "*"
MAX_FILTER_LENGTH = 256
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _check_filter_string(value: object) -> str:
    if not isinstance(value, str):
        raise FilterError("Filter is not a string", value)
    if len(value) > MAX_FILTER_LENGTH:
        raise FilterError("Filter too long", value)
    if _CONTROL_CHARS.search(value):
        raise FilterError("Filter contains control characters", value)
    return value


@lru_cache(maxsize=1024)
def compile_date_filter(date_filter: str) -> Optional[str]:
    """Return the normalized ISO date, or None for the wildcard."""
    value = _check_filter_string(date_filter).strip()
    if value in ("", WILDCARD):
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date().isoformat()
    except ValueError:
        raise FilterError("Invalid date filter", date_filter) from None


@lru_cache(maxsize=1024)
def compile_reference_filter(reference_filter: str) -> Optional[re.Pattern]:
    """Return an anchored regex for the glob, or None for the wildcard."""
    value = _check_filter_string(reference_filter)
    if value in ("", WILDCARD):
        return None
    pattern = re.escape(value).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(pattern, re.DOTALL)


def date_matches(date_filter: str, session_date: str) -> bool:
    wanted = compile_date_filter(date_filter)
    return wanted is None or wanted == session_date


def reference_matches(reference_filter: str, reference: str) -> bool:
    regex = compile_reference_filter(reference_filter)
    return regex is None or regex.fullmatch(reference) is not None


def session_filter(date_filter: str, reference_filter: str) -> Callable[[Session], bool]:
    """Build a predicate for ad-hoc queries. Raises FilterError for bad input."""
    compile_date_filter(date_filter)
    compile_reference_filter(reference_filter)

    def predicate(session: Session) -> bool:
        return date_matches(date_filter, session.date) and reference_matches(reference_filter, session.reference)

    return predicate


def matches(subscription: Subscription, session: Session, court: Optional[str] = None) -> bool:
    """
    True iff the session satisfies both filters of the subscription.

    When `court` (the court the session was listed under) is given, it must be
    the subscription's court too.
    """
    if court is not None and court != subscription.court:
        return False
    try:
        return (
            date_matches(subscription.date_filter, session.date)
            and reference_matches(subscription.reference_filter, session.reference)
        )
    except FilterError as e:
        logger.debug("Subscription %s has a malformed filter, matching nothing (%s)", subscription.subscription_id, e)
        return False
