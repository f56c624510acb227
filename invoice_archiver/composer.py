"""Compose one named archive document out of a forwarded invoice message."""

from __future__ import annotations

import html
import logging
from pathlib import PurePath
from typing import Callable, Optional

from .attachment_dedupe import dedupe_attachments
from .config import Settings
from .dates import format_stamp, resolve_date
from .images import append_before_body_close, embed_images
from .metadata import MetadataExtractor
from .models import Attachment, ComposedDocument, ExtractedMeta, Message, StandaloneFile
from .thumbnails import PreviewService, ThumbnailFetcher
from .utils import sanitize_filename

logger = logging.getLogger(__name__)

Renderer = Callable[[str, str], bytes]

PREVIEW_SECTION = (
    '<div style="page-break-before:always;margin-top:24px">'
    '<h3 style="font-family:sans-serif">{name}</h3>{content}</div>'
)
PREVIEW_IMAGE = '<img src="{src}" alt="{name}" style="max-width:100%;border:1px solid #ccc">'
PREVIEW_PLACEHOLDER = '<p style="font-family:sans-serif;color:#777">Preview not available for {name}</p>'


def build_stem(stamp: str, meta: ExtractedMeta) -> str:
    return sanitize_filename(f"{stamp} - {meta.business_code} - {meta.sender_name}")


class DocumentComposer:
    """Glue the heuristics together and hand the HTML to a renderer."""

    def __init__(
        self,
        extractor: MetadataExtractor,
        renderer: Renderer,
        thumbnail_fetcher: Optional[ThumbnailFetcher] = None,
        include_previews: bool = True,
        save_attachments: bool = True,
    ) -> None:
        self.extractor = extractor
        self.renderer = renderer
        self.thumbnail_fetcher = thumbnail_fetcher
        self.include_previews = include_previews
        self.save_attachments = save_attachments

    @classmethod
    def from_settings(
        cls, settings: Settings, renderer: Renderer, preview_service: Optional[PreviewService] = None
    ) -> "DocumentComposer":
        """Wire a composer from configuration; without a preview service PDFs get placeholders."""
        fetcher = None
        if preview_service is not None:
            fetcher = ThumbnailFetcher(
                preview_service,
                retry_delays=settings.thumbnail_retry_delays,
                size=settings.thumbnail_size,
            )
        return cls(
            extractor=MetadataExtractor(settings.business_codes, settings.default_business_code),
            renderer=renderer,
            thumbnail_fetcher=fetcher,
            include_previews=settings.include_attachment_previews,
            save_attachments=settings.save_attachments_separately,
        )

    def compose(self, message: Message) -> ComposedDocument:
        meta = self.extractor.extract(message.body_text, message.subject)
        resolved = resolve_date(message.body_text, message.received)
        stem = build_stem(format_stamp(resolved), meta)
        logger.info("Composing '%s' for message '%s'", stem, message.subject)

        images = dedupe_attachments(a for a in message.attachments if a.is_image)
        files = dedupe_attachments(a for a in message.attachments if not a.is_image)

        document = embed_images(message.body_html, images, plain_text=message.body_text)
        if self.include_previews and files:
            sections = "".join(self._preview_section(attachment) for attachment in files)
            document = append_before_body_close(document, sections)

        standalone = self._standalone_files(stem, files) if self.save_attachments else []
        pdf = self.renderer(document, f"{stem}.pdf")
        return ComposedDocument(
            stem=stem,
            html=document,
            pdf=pdf,
            meta=meta,
            resolved_date=resolved,
            standalone_files=standalone,
        )

    def _preview_section(self, attachment: Attachment) -> str:
        name = html.escape(attachment.name or "attachment", quote=True)
        thumbnail = None
        if self.thumbnail_fetcher is not None and (attachment.mime_type or "").lower() == "application/pdf":
            thumbnail = self.thumbnail_fetcher.get_thumbnail(attachment)
        if thumbnail:
            content = PREVIEW_IMAGE.format(src=thumbnail, name=name)
        else:
            content = PREVIEW_PLACEHOLDER.format(name=name)
        return PREVIEW_SECTION.format(name=name, content=content)

    @staticmethod
    def _standalone_files(stem: str, attachments: list[Attachment]) -> list[StandaloneFile]:
        files: list[StandaloneFile] = []
        taken: set[str] = set()
        for attachment in attachments:
            extension = PurePath(attachment.name or "").suffix
            filename = f"{stem}{extension}"
            counter = 2
            while filename.lower() in taken:
                filename = f"{stem} ({counter}){extension}"
                counter += 1
            taken.add(filename.lower())
            files.append(
                StandaloneFile(filename=filename, mime_type=attachment.mime_type, content=attachment.content)
            )
        return files
