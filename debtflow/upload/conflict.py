"""Overwrite detection for usage uploads."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Literal, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

CONFLICT_WINDOW_DAYS = 30

LastUploadLookup = Callable[[str], Awaitable[Optional[datetime]]]


class ConflictPolicy(str, Enum):
    """What a detected overwrite conflict does to the upload."""

    ADVISORY = "advisory"
    CONFIRM = "confirm"


class ConflictWarning(BaseModel):
    type: Literal["overwrite"] = "overwrite"
    message: str
    last_upload_date_formatted: str
    last_upload_date: datetime
    days_since_last_upload: int


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp as sent by the backend into an aware datetime.

    Raises ``ValueError`` for anything that is not an ISO timestamp string.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO timestamp string, got {value!r}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_upload_date(value: datetime) -> str:
    """Render a date as month/day/year without zero padding."""
    return f"{value.month}/{value.day}/{value.year}"


def conflict_message(formatted_date: str, window_days: int = CONFLICT_WINDOW_DAYS) -> str:
    return (
        f"It has NOT been {window_days} days since the last upload "
        f"(last upload: {formatted_date}). Do you want to overwrite?"
    )


class ConflictChecker:
    """Compare an organization's last usage upload against the conflict window."""

    def __init__(
        self,
        lookup: LastUploadLookup,
        window_days: int = CONFLICT_WINDOW_DAYS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._lookup = lookup
        self.window_days = window_days
        self._clock = clock

    def evaluate(self, last_upload: Optional[datetime]) -> Optional[ConflictWarning]:
        if last_upload is None:
            return None
        if last_upload.tzinfo is None:
            last_upload = last_upload.replace(tzinfo=timezone.utc)
        days_since = (self._clock() - last_upload).days
        if days_since >= self.window_days:
            return None
        formatted = format_upload_date(last_upload)
        return ConflictWarning(
            message=conflict_message(formatted, self.window_days),
            last_upload_date_formatted=formatted,
            last_upload_date=last_upload,
            days_since_last_upload=days_since,
        )

    async def check(self, organization: str) -> Optional[ConflictWarning]:
        """Look up the last upload and return a warning inside the window.

        Lookup failures are logged and treated as "no conflict".
        """
        try:
            last_upload = await self._lookup(organization)
        except Exception as e:
            logger.warning(f"Could not check last upload date for {organization}: {e}")
            return None
        return self.evaluate(last_upload)
