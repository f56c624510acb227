"""Drop attachments whose bytes were already seen in the same message."""

from __future__ import annotations

import logging
from typing import Iterable

from .models import Attachment
from .utils import sha256_hex

logger = logging.getLogger(__name__)


def dedupe_attachments(attachments: Iterable[Attachment]) -> list[Attachment]:
    """Keep the first attachment per distinct content digest, in original order.

    Names, mime types and content ids are ignored: vendors resend the same PDF
    under different file names.
    """
    seen: set[str] = set()
    unique: list[Attachment] = []
    for attachment in attachments:
        digest = sha256_hex(attachment.content)
        if digest in seen:
            logger.debug("Dropping duplicate attachment '%s' (%s)", attachment.name, digest[:12])
            continue
        seen.add(digest)
        unique.append(attachment)
    return unique
