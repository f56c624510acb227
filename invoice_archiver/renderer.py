"""HTML to PDF rendering."""

from __future__ import annotations

import logging

import weasyprint

logger = logging.getLogger(__name__)


class WeasyPrintRenderer:
    """Render self-contained HTML (data URIs only) into PDF bytes."""

    def __init__(self, base_url: str | None = None) -> None:
        self.base_url = base_url

    def __call__(self, document: str, filename: str) -> bytes:
        return self.render(document, filename)

    def render(self, document: str, filename: str) -> bytes:
        logger.debug("Rendering '%s'", filename)
        return weasyprint.HTML(string=document, base_url=self.base_url).write_pdf()
