"""SQLite-backed ledger of messages that were already archived."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

import sqlite_utils


class ProcessedLedger:
    """Store archived message IDs with the stem they were filed under."""

    TABLE = "archived_messages"

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db = sqlite_utils.Database(str(db_path))
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.db[self.TABLE].create(
            {
                "message_id": str,
                "internet_message_id": str,
                "stem": str,
                "attachment_count": int,
                "paperless_document_id": int,
                "processed_at": str,
            },
            pk="message_id",
            if_not_exists=True,
        )

    def seen(self, message_id: str) -> bool:
        return self.db[self.TABLE].count_where("message_id = ?", [message_id]) > 0

    def record(
        self,
        *,
        message_id: str,
        internet_message_id: str,
        stem: str,
        attachment_count: int,
        paperless_document_id: Optional[int],
    ) -> None:
        self.db[self.TABLE].upsert(
            {
                "message_id": message_id,
                "internet_message_id": internet_message_id,
                "stem": stem,
                "attachment_count": attachment_count,
                "paperless_document_id": paperless_document_id,
                "processed_at": datetime.now(tz=UTC).isoformat(),
            },
            pk="message_id",
        )
