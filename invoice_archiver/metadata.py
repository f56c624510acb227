"""Heuristics that derive the business code and sender name of an invoice."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from .models import ExtractedMeta
from .utils import first_result

logger = logging.getLogger(__name__)

UNKNOWN_SENDER = "Unknown"

_REPLY_PREFIX = re.compile(r"^\s*(?:(?:re|fwd?)\s*:\s*)+", re.IGNORECASE)
_FROM_HEADER = re.compile(r"^[ \t>*]*From:\**[ \t]*(?P<value>.+)$", re.MULTILINE)
_NAMED_ADDRESS = re.compile(r"^(?P<name>.*?)<(?P<address>[^<>\s]*@[^<>\s]*)>")
_BARE_ADDRESS = re.compile(r"[^\s<>@]+@(?P<domain>[^\s<>@]+)")


class MetadataExtractor:
    """Evaluate tag-line and forwarded-header heuristics to name an invoice."""

    def __init__(self, business_codes: Iterable[str], default_code: str = "DCL") -> None:
        self.business_codes = frozenset(code.strip().upper() for code in business_codes if code.strip())
        self.default_code = default_code.strip().upper()

    def extract(
        self, body_text: str, subject: str, forwarded_text: Optional[str] = None
    ) -> ExtractedMeta:
        """Return the business code and sender, first successful strategy wins."""
        body_text = body_text or ""
        if forwarded_text is None:
            forwarded_text = body_text
        strategies = (self._from_body, self._from_subject, self._from_forwarded_headers)
        return first_result(strategies, body_text, subject or "", forwarded_text)

    def parse_tag_line(self, line: str) -> Optional[ExtractedMeta]:
        """Parse '<CODE> <sender name>' where CODE is whitelisted and upper case."""
        tokens = line.split()
        if len(tokens) < 2:
            return None
        code = tokens[0]
        if code != code.upper() or code not in self.business_codes:
            return None
        return ExtractedMeta(business_code=code, sender_name=" ".join(tokens[1:]))

    def _from_body(self, body_text: str, subject: str, forwarded_text: str) -> Optional[ExtractedMeta]:
        # Only the first non-blank line counts as a tag line.
        for line in body_text.splitlines():
            if line.strip():
                meta = self.parse_tag_line(line)
                if meta is not None:
                    logger.debug("Tag line in body matched code %s", meta.business_code)
                return meta
        return None

    def _from_subject(self, body_text: str, subject: str, forwarded_text: str) -> Optional[ExtractedMeta]:
        meta = self.parse_tag_line(_REPLY_PREFIX.sub("", subject))
        if meta is not None:
            logger.debug("Subject '%s' matched code %s", subject, meta.business_code)
        return meta

    def _from_forwarded_headers(
        self, body_text: str, subject: str, forwarded_text: str
    ) -> ExtractedMeta:
        sender = self.sender_from_headers(forwarded_text) or UNKNOWN_SENDER
        logger.debug(
            "No tag line found; falling back to %s for sender '%s'", self.default_code, sender
        )
        return ExtractedMeta(business_code=self.default_code, sender_name=sender)

    @staticmethod
    def sender_from_headers(text: str) -> Optional[str]:
        """Derive a sender name from the first forwarded 'From:' header line."""
        match = _FROM_HEADER.search(text or "")
        if not match:
            return None
        value = match.group("value").strip()

        named = _NAMED_ADDRESS.search(value)
        if named:
            name = named.group("name").strip().strip("\"'").strip()
            if name:
                return name

        bare = _BARE_ADDRESS.search(value)
        if bare:
            label = bare.group("domain").split(".")[0]
            if label:
                return label.capitalize()
        return None
