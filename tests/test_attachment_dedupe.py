from __future__ import annotations

from invoice_archiver.attachment_dedupe import dedupe_attachments
from invoice_archiver.models import Attachment


def test_identical_bytes_under_different_names_keep_first():
    first = Attachment(name="invoice.pdf", mime_type="application/pdf", content=b"%PDF-1.4 same")
    second = Attachment(name="Rechnung_123.pdf", mime_type="application/octet-stream", content=b"%PDF-1.4 same")

    kept = dedupe_attachments([first, second])

    assert kept == [first]


def test_survivors_keep_relative_order():
    a = Attachment(name="a.pdf", mime_type="application/pdf", content=b"a")
    b = Attachment(name="b.pdf", mime_type="application/pdf", content=b"b")
    a_again = Attachment(name="copy.pdf", mime_type="application/pdf", content=b"a", content_id="<x>")
    c = Attachment(name="c.pdf", mime_type="application/pdf", content=b"c")

    assert dedupe_attachments([a, b, a_again, c]) == [a, b, c]


def test_state_is_not_shared_between_calls():
    a = Attachment(name="a.pdf", mime_type="application/pdf", content=b"a")
    assert dedupe_attachments([a]) == [a]
    assert dedupe_attachments([a]) == [a]
    assert dedupe_attachments([]) == []
