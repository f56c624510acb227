"""Typed containers shared across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


@dataclass
class Attachment:
    """A file attached to a message, bytes included."""

    name: str
    mime_type: str
    content: bytes
    content_id: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return (self.mime_type or "").lower().startswith("image/")


@dataclass
class Message:
    """The parts of a mailbox message the archiver consumes."""

    subject: str
    body_text: str
    body_html: str
    received: Optional[datetime]
    attachments: list[Attachment] = field(default_factory=list)
    message_id: str = ""
    internet_message_id: str = ""


@dataclass
class ExtractedMeta:
    """Business code plus sender name derived from the message text."""

    business_code: str
    sender_name: str = "Unknown"


@dataclass
class StandaloneFile:
    """A non-image attachment re-named for separate archival."""

    filename: str
    mime_type: str
    content: bytes


@dataclass
class ComposedDocument:
    """The rendered archive document and its side files."""

    stem: str
    html: str
    pdf: bytes
    meta: ExtractedMeta
    resolved_date: Optional[date]
    standalone_files: list[StandaloneFile] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return f"{self.stem}.pdf"
