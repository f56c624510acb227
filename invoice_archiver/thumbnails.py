"""Preview thumbnails for non-image attachments via a remote preview service."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Protocol, Sequence

import requests

from .config import DEFAULT_RETRY_DELAYS
from .models import Attachment
from .utils import to_data_uri

logger = logging.getLogger(__name__)


class PreviewService(Protocol):
    """Staging + thumbnail operations (implemented by GraphClient)."""

    def stage_file(self, name: str, content: bytes, content_type: str) -> str: ...

    def thumbnail_reference(self, item_id: str, size: int) -> Optional[str]: ...

    def fetch_thumbnail(self, reference: str) -> requests.Response: ...

    def remove_staged_file(self, item_id: str) -> None: ...


class ThumbnailFetcher:
    """Stage an attachment, poll for its preview, and always clean up."""

    def __init__(
        self,
        service: PreviewService,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        size: int = 1600,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.service = service
        self.retry_delays = list(retry_delays)
        self.size = size
        self._sleep = sleep

    def get_thumbnail(self, attachment: Attachment) -> Optional[str]:
        """Return a data URI preview of the attachment, or None if none arrived."""
        try:
            with self._staged(attachment) as item_id:
                return self._poll(item_id, attachment.name)
        except Exception:
            logger.warning("Thumbnail request for '%s' failed", attachment.name, exc_info=True)
            return None

    def _poll(self, item_id: str, name: str) -> Optional[str]:
        # Preview generation is asynchronous and has no completion signal.
        attempts = len(self.retry_delays)
        for attempt, delay in enumerate(self.retry_delays, start=1):
            self._sleep(delay)
            reference = self.service.thumbnail_reference(item_id, self.size)
            if not reference:
                logger.debug("No thumbnail yet for '%s' (attempt %d/%d)", name, attempt, attempts)
                continue
            response = self.service.fetch_thumbnail(reference)
            if response.status_code == 200:
                content_type = response.headers.get("Content-Type", "image/jpeg").split(";")[0]
                logger.info("Fetched thumbnail for '%s' on attempt %d", name, attempt)
                return to_data_uri(response.content, content_type)
            logger.debug(
                "Thumbnail for '%s' not ready (status %s, attempt %d/%d)",
                name,
                response.status_code,
                attempt,
                attempts,
            )
        logger.warning("Gave up on thumbnail for '%s' after %d attempts", name, attempts)
        return None

    @contextmanager
    def _staged(self, attachment: Attachment) -> Iterator[str]:
        item_id = self.service.stage_file(attachment.name, attachment.content, attachment.mime_type)
        logger.debug("Staged '%s' as %s", attachment.name, item_id)
        try:
            yield item_id
        finally:
            try:
                self.service.remove_staged_file(item_id)
            except Exception:
                logger.warning("Could not remove staged file %s", item_id, exc_info=True)
