"""Pick the transaction date out of forwarded invoice mail."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

from .utils import first_result

logger = logging.getLogger(__name__)

MISSING_STAMP = "000000"

_ISO_DATE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
_SIX_DIGITS = re.compile(r"(?<!\d)(\d{2})(\d{2})(\d{2})(?!\d)")
_QUOTED_FORWARD = re.compile(
    r"On (?:[A-Z][a-z]{2,8},? )?(?P<date>[A-Z][a-z]{2,8}\.? \d{1,2}, \d{4})[\s\S]*?wrote:"
)
_DATE_HEADER = re.compile(r"^[ \t>*]*Date:\**[ \t]*(?P<value>.+)$", re.MULTILINE)
_TRAILING_TIME = re.compile(r"\s+at\s+.*$", re.IGNORECASE)


def _calendar_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


_FILL_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))


def _parse_free_text(value: str) -> Optional[date]:
    """Parse a complete calendar date; text missing year, month or day is a miss."""
    try:
        parsed = {date_parser.parse(value, default=default).date() for default in _FILL_DEFAULTS}
    except (ValueError, OverflowError):
        logger.debug("Ignoring unparsable date candidate '%s'", value)
        return None
    if len(parsed) != 1:
        logger.debug("Ignoring partial date candidate '%s'", value)
        return None
    return parsed.pop()


def date_from_iso(body_text: str, fallback: Optional[datetime] = None) -> Optional[date]:
    match = _ISO_DATE.search(body_text)
    if not match:
        return None
    year, month, day = (int(group) for group in match.groups())
    return _calendar_date(year, month, day)


def date_from_six_digits(body_text: str, fallback: Optional[datetime] = None) -> Optional[date]:
    match = _SIX_DIGITS.search(body_text)
    if not match:
        return None
    year, month, day = (int(group) for group in match.groups())
    return _calendar_date(2000 + year, month, day)


def date_from_quoted_forward(body_text: str, fallback: Optional[datetime] = None) -> Optional[date]:
    """Handle 'On March 3, 2024 at 10:02, Someone <x@y> wrote:' markers."""
    match = _QUOTED_FORWARD.search(body_text)
    if not match:
        return None
    return _parse_free_text(match.group("date"))


def date_from_forwarded_header(body_text: str, fallback: Optional[datetime] = None) -> Optional[date]:
    """Handle 'Date: Fri, Dec 15, 2023 at 10:00 AM' lines of forwarded mail."""
    match = _DATE_HEADER.search(body_text)
    if not match:
        return None
    value = _TRAILING_TIME.sub("", match.group("value").strip())
    if not value:
        return None
    return _parse_free_text(value)


def date_from_message(body_text: str, fallback: Optional[datetime] = None) -> Optional[date]:
    if fallback is None:
        return None
    if isinstance(fallback, datetime):
        # Graph reports UTC; stamp the day as seen in the local timezone.
        if fallback.tzinfo is not None:
            fallback = fallback.astimezone()
        return fallback.date()
    return fallback


DATE_STRATEGIES = (
    date_from_iso,
    date_from_six_digits,
    date_from_quoted_forward,
    date_from_forwarded_header,
    date_from_message,
)


def resolve_date(body_text: str, fallback: Optional[datetime] = None) -> Optional[date]:
    """Return the first date found by the strategy chain, or None."""
    return first_result(DATE_STRATEGIES, body_text or "", fallback)


def format_stamp(value: Optional[date]) -> str:
    """Format a date as YYMMDD; missing dates become '000000'."""
    if value is None:
        return MISSING_STAMP
    return f"{value.year % 100:02d}{value.month:02d}{value.day:02d}"
