"""Entry point that archives forwarded Outlook invoices into Paperless-ngx."""

from __future__ import annotations

import argparse
import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
import sys

from dotenv import load_dotenv

# Ensure project root is on sys.path when running as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from invoice_archiver.composer import DocumentComposer
from invoice_archiver.config import Settings
from invoice_archiver.graph_client import GraphClient
from invoice_archiver.ledger import ProcessedLedger
from invoice_archiver.paperless_client import PaperlessClient
from invoice_archiver.renderer import WeasyPrintRenderer
from invoice_archiver.utils import ensure_utc

load_dotenv()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Archive forwarded Outlook invoices into Paperless.")
    parser.add_argument("--since", type=parse_datetime, help="ISO8601 timestamp (UTC) to start from")
    parser.add_argument(
        "--since-days",
        type=int,
        help="Shortcut for '--since' expressed as N days ago (integers only)",
    )
    parser.add_argument("--max-messages", type=int, help="Limit how many messages to inspect")
    parser.add_argument(
        "--dry-run", action="store_true", help="Compose documents and log their names without uploading"
    )
    return parser


def parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(UTC)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid ISO timestamp: {value}") from exc


def resolve_since(args: argparse.Namespace) -> datetime | None:
    if args.since and args.since_days:
        raise SystemExit("Use either --since or --since-days, not both.")
    if args.since:
        return ensure_utc(args.since)
    if args.since_days:
        return datetime.now(tz=UTC) - timedelta(days=args.since_days)
    return None


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_composer(settings: Settings, graph_client: GraphClient, dry_run: bool = False) -> DocumentComposer:
    # A dry run must not stage files in OneDrive, so previews fall back to placeholders.
    preview_service = None if dry_run else graph_client
    return DocumentComposer.from_settings(settings, WeasyPrintRenderer(), preview_service=preview_service)


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    settings = Settings()
    configure_logging(settings.log_level)
    since = resolve_since(args)

    graph_client = GraphClient(settings)
    paperless_client = PaperlessClient(settings)
    ledger = ProcessedLedger(settings.processed_ledger_db)
    composer = build_composer(settings, graph_client, dry_run=args.dry_run)

    stats = {"processed": 0, "skipped": 0, "uploaded": 0}

    for message in graph_client.iter_messages(received_since=since, max_messages=args.max_messages):
        if ledger.seen(message.message_id):
            logging.info("Already archived message %s; skipping", message.internet_message_id)
            stats["skipped"] += 1
            continue

        stats["processed"] += 1
        document = composer.compose(message)

        if args.dry_run:
            logging.info(
                "[DRY-RUN] Would upload '%s' (+%d standalone file(s)) from message '%s'",
                document.filename,
                len(document.standalone_files),
                message.subject,
            )
            continue

        metadata = {
            "subject": message.subject,
            "internet_message_id": message.internet_message_id,
            "graph_message_id": message.message_id,
            "business_code": document.meta.business_code,
            "sender_name": document.meta.sender_name,
        }
        paperless_id = paperless_client.upload_document(
            file_bytes=document.pdf,
            filename=document.filename,
            title=document.stem,
            created=document.resolved_date,
            metadata=metadata,
        )
        for standalone in document.standalone_files:
            paperless_client.upload_document(
                file_bytes=standalone.content,
                filename=standalone.filename,
                title=Path(standalone.filename).stem,
                created=document.resolved_date,
                content_type=standalone.mime_type,
                metadata=metadata,
            )

        if paperless_id is None:
            logging.warning(
                "Paperless did not return a document id for '%s'; recorded as archived anyway",
                document.filename,
            )

        ledger.record(
            message_id=message.message_id,
            internet_message_id=message.internet_message_id,
            stem=document.stem,
            attachment_count=len(message.attachments),
            paperless_document_id=paperless_id,
        )
        stats["uploaded"] += 1

    logging.info(
        "Run complete: processed=%s uploaded=%s skipped=%s",
        stats["processed"],
        stats["uploaded"],
        stats["skipped"],
    )


if __name__ == "__main__":
    main()
