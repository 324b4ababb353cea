"""
Fetch collaborator: retrieves a court's current session listing.

Provides:
- CourtFetcher: the protocol the Dispatch Engine depends on
- HttpCourtFetcher: default implementation reading a JSON listing over HTTP

The source format is deliberately thin. COURT_SOURCE_URL (with "{court}")
must answer with:
    {
        "full_name": "Verwaltungsgericht Köln",
        "sessions": [
            {"date": "2024-01-10", "time": "09:00", "type": "...", "lawsuit": "...",
             "hall": "...", "reference": "...", "note": "..."},
            ...
        ]
    }
Missing string fields become "". Anything else (HTTP error, timeout, invalid
JSON, invalid dates) is reported as FetchError.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import ValidationError

from config.settings import settings
from core.exceptions import FetchError
from models.session import SESSION_FIELDS, CourtListing, Session

logger = logging.getLogger(__name__)


class CourtFetcher(Protocol):
    async def fetch(self, court: str) -> CourtListing:
        ...


def _normalize_session(raw: Dict[str, Any]) -> Session:
    values = {f: "" if raw.get(f) is None else str(raw.get(f)).strip() for f in SESSION_FIELDS}
    # raises ValueError for anything that is not a calendar date
    values["date"] = date.fromisoformat(values["date"]).isoformat()
    return Session(**values)


def parse_listing(data: Any) -> CourtListing:
    """Convert the raw JSON payload into a CourtListing."""
    if not isinstance(data, dict) or not isinstance(data.get("sessions", []), list):
        raise ValueError("listing must be an object with a 'sessions' array")
    full_name = data.get("full_name")
    sessions = [_normalize_session(s) for s in data.get("sessions", [])]
    return CourtListing(full_name=str(full_name) if full_name else None, sessions=sessions)


class HttpCourtFetcher:
    def __init__(
        self,
        url_template: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url_template = url_template or settings.COURT_SOURCE_URL
        self.timeout = settings.FETCH_TIMEOUT_SEC if timeout is None else timeout
        self._client = client

    def url_for(self, court: str) -> str:
        try:
            return self.url_template.format(court=court)
        except (KeyError, IndexError, ValueError) as e:
            raise FetchError(f"Bad COURT_SOURCE_URL template {self.url_template!r}: {e}", court=court) from e

    async def fetch(self, court: str) -> CourtListing:
        url = self.url_for(court)
        logger.info("Get listing %s", url)
        try:
            if self._client is not None:
                resp = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(url)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"Failed to retrieve listing: {e}", court=court) from e
        except ValueError as e:
            raise FetchError(f"Listing is not valid JSON: {e}", court=court) from e

        try:
            listing = parse_listing(data)
        except (ValueError, TypeError, ValidationError) as e:
            raise FetchError(f"Invalid listing content: {e}", court=court) from e
        logger.debug("%s: got %d sessions", court, len(listing.sessions))
        return listing
