"""Utility helpers shared across modules."""

from __future__ import annotations

import base64
import re
from datetime import UTC, datetime
from hashlib import sha256
from typing import Callable, Iterable, Optional, TypeVar

T = TypeVar("T")

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def parse_graph_datetime(value: str) -> datetime:
    """Convert Graph ISO strings (with trailing Z) into aware UTC datetimes."""
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Force a datetime into UTC without altering instant."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO string that Graph and Paperless accept."""
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def sha256_hex(payload: bytes) -> str:
    """Convenience wrapper for hex digests."""
    return sha256(payload).hexdigest()


def to_data_uri(content: bytes, mime_type: str) -> str:
    """Encode bytes as a base64 data URI usable in an img src."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type or 'application/octet-stream'};base64,{encoded}"


def first_result(strategies: Iterable[Callable[..., Optional[T]]], *args) -> Optional[T]:
    """Run strategies in order and return the first non-None result."""
    for strategy in strategies:
        result = strategy(*args)
        if result is not None:
            return result
    return None


def sanitize_filename(value: str, fallback: str = "invoice") -> str:
    """Replace characters that are invalid in file names and trim."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", value or "").strip()
    return cleaned or fallback
