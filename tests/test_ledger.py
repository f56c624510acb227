from __future__ import annotations

from invoice_archiver.ledger import ProcessedLedger


def test_record_marks_message_as_seen(tmp_path):
    ledger = ProcessedLedger(tmp_path / "state" / "ledger.db")

    assert not ledger.seen("msg-1")

    ledger.record(
        message_id="msg-1",
        internet_message_id="<abc@example.com>",
        stem="231215 - TF - Acme",
        attachment_count=2,
        paperless_document_id=None,
    )
    ledger.record(
        message_id="msg-1",
        internet_message_id="<abc@example.com>",
        stem="231215 - TF - Acme",
        attachment_count=2,
        paperless_document_id=42,
    )

    assert ledger.seen("msg-1")
    assert not ledger.seen("msg-2")
    assert ledger.db[ProcessedLedger.TABLE].get("msg-1")["paperless_document_id"] == 42
