from __future__ import annotations

from datetime import UTC, date, datetime

from invoice_archiver.composer import DocumentComposer
from invoice_archiver.config import DEFAULT_BUSINESS_CODES
from invoice_archiver.metadata import MetadataExtractor
from invoice_archiver.models import Attachment, Message

THUMB = "data:image/png;base64,VEhVTUI="


class _Renderer:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def __call__(self, document: str, filename: str) -> bytes:
        self.calls.append((document, filename))
        return b"%PDF-rendered"


class _Fetcher:
    def __init__(self) -> None:
        self.requested: list[str] = []

    def get_thumbnail(self, attachment):
        self.requested.append(attachment.name)
        return THUMB


def _composer(renderer, fetcher=None, **kwargs) -> DocumentComposer:
    extractor = MetadataExtractor(DEFAULT_BUSINESS_CODES, default_code="DCL")
    return DocumentComposer(extractor, renderer, thumbnail_fetcher=fetcher, **kwargs)


def test_message_without_attachments_still_renders_body():
    renderer = _Renderer()
    message = Message(
        subject="Fwd: receipt",
        body_text="TF Acme Travel\nInvoice 2023-12-15",
        body_html="",
        received=datetime(2024, 1, 2, tzinfo=UTC),
    )

    document = _composer(renderer).compose(message)

    assert document.stem == "231215 - TF - Acme Travel"
    assert document.filename == "231215 - TF - Acme Travel.pdf"
    assert document.pdf == b"%PDF-rendered"
    assert document.resolved_date == date(2023, 12, 15)
    assert document.standalone_files == []
    assert renderer.calls == [(document.html, "231215 - TF - Acme Travel.pdf")]
    assert "Acme Travel" in document.html


def test_stem_is_sanitized():
    message = Message(
        subject="",
        body_text="DCL A:B?",
        body_html="",
        received=datetime(2023, 12, 15, 9, 0, tzinfo=UTC),
    )

    assert _composer(_Renderer()).compose(message).stem == "231215 - DCL - A_B_"


def test_empty_message_gets_placeholder_stem():
    document = _composer(_Renderer()).compose(Message(subject="", body_text="", body_html="", received=None))
    assert document.stem == "000000 - DCL - Unknown"


def test_attachments_are_deduped_previewed_and_split_out():
    renderer = _Renderer()
    fetcher = _Fetcher()
    logo = Attachment(name="logo.png", mime_type="image/png", content=b"png", content_id="<logo>")
    logo_copy = Attachment(name="logo-copy.png", mime_type="image/png", content=b"png")
    invoice = Attachment(name="invoice.pdf", mime_type="application/pdf", content=b"%PDF one")
    invoice_copy = Attachment(name="Rechnung.pdf", mime_type="application/pdf", content=b"%PDF one")
    receipt = Attachment(name="receipt.PDF", mime_type="application/pdf", content=b"%PDF two")
    terms = Attachment(name="terms.docx", mime_type="application/msword", content=b"docx")
    message = Message(
        subject="HSA Clinic",
        body_text="",
        body_html='<html><body><img src="cid:logo"></body></html>',
        received=datetime(2024, 3, 5, tzinfo=UTC),
        attachments=[logo, invoice, logo_copy, invoice_copy, receipt, terms],
    )

    document = _composer(renderer, fetcher).compose(message)

    assert document.stem == "240305 - HSA - Clinic"
    assert fetcher.requested == ["invoice.pdf", "receipt.PDF"]
    assert document.html.count(THUMB) == 2
    assert "Preview not available for terms.docx" in document.html
    assert "Rechnung.pdf" not in document.html
    assert document.html.index("terms.docx") < document.html.index("</body>")
    assert [f.filename for f in document.standalone_files] == [
        "240305 - HSA - Clinic.pdf",
        "240305 - HSA - Clinic (2).PDF",
        "240305 - HSA - Clinic.docx",
    ]


def test_previews_can_be_disabled():
    fetcher = _Fetcher()
    invoice = Attachment(name="invoice.pdf", mime_type="application/pdf", content=b"%PDF")
    message = Message(
        subject="",
        body_text="TMM Ferry",
        body_html="",
        received=None,
        attachments=[invoice],
    )

    document = _composer(_Renderer(), fetcher, include_previews=False, save_attachments=False).compose(message)

    assert fetcher.requested == []
    assert "invoice.pdf" not in document.html
    assert document.standalone_files == []


def test_pdf_without_fetcher_gets_placeholder():
    invoice = Attachment(name="invoice.pdf", mime_type="application/pdf", content=b"%PDF")
    message = Message(subject="", body_text="TMM Ferry", body_html="", received=None, attachments=[invoice])

    document = _composer(_Renderer()).compose(message)

    assert "Preview not available for invoice.pdf" in document.html


def test_stem_replaces_every_unsafe_character():
    message = Message(
        subject="",
        body_text='DCL A/B\\C*"<>|',
        body_html="",
        received=datetime(2023, 12, 15, 9, 0, tzinfo=UTC),
    )

    assert _composer(_Renderer()).compose(message).stem == "231215 - DCL - A_B_C_____"


def test_composer_without_preview_service_never_stages_files():
    from invoice_archiver.config import Settings

    composer = DocumentComposer.from_settings(Settings(_env_file=None), _Renderer(), preview_service=None)
    invoice = Attachment(name="invoice.pdf", mime_type="application/pdf", content=b"%PDF")
    message = Message(subject="", body_text="TMM Ferry", body_html="", received=None, attachments=[invoice])

    document = composer.compose(message)

    assert composer.thumbnail_fetcher is None
    assert "Preview not available for invoice.pdf" in document.html


def test_composer_from_settings_uses_configured_schedule():
    from invoice_archiver.config import Settings

    composer = DocumentComposer.from_settings(Settings(_env_file=None), _Renderer(), preview_service=object())

    assert composer.thumbnail_fetcher.retry_delays == [2.0, 3.0, 4.0, 5.0, 5.0]
    assert composer.thumbnail_fetcher.size == 1600
    assert composer.extractor.default_code == "DCL"
