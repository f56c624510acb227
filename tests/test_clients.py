from __future__ import annotations

import base64
from datetime import UTC, date, datetime

from invoice_archiver.graph_client import GraphClient
from invoice_archiver.paperless_client import PaperlessClient


def test_graph_message_keeps_html_body_and_received_date():
    raw = {
        "id": "AAMk1",
        "subject": "Fwd: TF Acme",
        "internetMessageId": "<x@y>",
        "receivedDateTime": "2023-12-15T09:30:00Z",
        "body": {"contentType": "html", "content": "<html><body>hi</body></html>"},
    }

    message = GraphClient._to_message(raw, "hi", [])

    assert message.body_html == "<html><body>hi</body></html>"
    assert message.body_text == "hi"
    assert message.received == datetime(2023, 12, 15, 9, 30, tzinfo=UTC)
    assert message.message_id == "AAMk1"


def test_graph_text_only_message_has_no_html():
    raw = {"id": "AAMk2", "body": {"contentType": "text", "content": "plain"}}

    message = GraphClient._to_message(raw, "plain", [])

    assert message.body_html == ""
    assert message.received is None


def test_graph_attachment_carries_content_id():
    raw = {"name": "image001.png", "contentType": "image/png", "contentId": "<ii_1>"}

    attachment = GraphClient._to_attachment(raw, base64.b64decode("iVBORw=="))

    assert attachment.is_image
    assert attachment.content_id == "<ii_1>"


def test_paperless_document_id_parsing():
    assert PaperlessClient._extract_document_id({"id": 12}) == 12
    assert PaperlessClient._extract_document_id("  34 ") == 34
    assert PaperlessClient._extract_document_id("9b1c-task-uuid") is None


def test_paperless_created_accepts_plain_dates():
    assert PaperlessClient._format_created(date(2023, 12, 15)) == "2023-12-15"
    assert PaperlessClient._format_created(datetime(2023, 12, 15, 8, 0)) == "2023-12-15T08:00:00+00:00"
