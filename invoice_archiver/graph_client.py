"""Microsoft Graph helper: mailbox messages in, OneDrive preview staging out."""

from __future__ import annotations

import base64
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional
from urllib.parse import quote

import msal
import requests
from requests import Response

from .config import Settings
from .models import Attachment, Message
from .utils import isoformat_utc, parse_graph_datetime

logger = logging.getLogger(__name__)

TEXT_BODY_PREFERENCE = 'outlook.body-content-type="text"'


class GraphClient:
    """Thin wrapper that authenticates with Graph, yields messages and stages previews."""

    GRAPH_SCOPE = ["https://graph.microsoft.com/.default"]
    GRAPH_BASE = "https://graph.microsoft.com/v1.0"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.session = requests.Session()
        self.scopes = settings.graph_scopes
        self.auth_mode = settings.graph_auth_mode
        self.authority = settings.authority_url
        self._token_cache = None

        if self.auth_mode == "client_credentials":
            self.app = msal.ConfidentialClientApplication(
                client_id=settings.graph_client_id,
                client_credential=settings.graph_client_secret,
                authority=self.authority,
            )
        else:
            token_cache = msal.SerializableTokenCache()
            cache_path = settings.graph_token_cache
            if cache_path.exists():
                token_cache.deserialize(cache_path.read_text())
            self._token_cache = token_cache
            self.app = msal.PublicClientApplication(
                client_id=settings.graph_client_id,
                authority=self.authority,
                token_cache=token_cache,
            )

    def iter_messages(
        self, received_since: datetime | None = None, max_messages: int | None = None
    ) -> Iterator[Message]:
        """Yield messages from the configured folder, newest first, attachments included."""
        url = f"{self.GRAPH_BASE}{self._user_root()}{self._folder_path()}/messages"
        params = {
            "$select": "id,subject,internetMessageId,receivedDateTime,body,hasAttachments",
            "$orderby": "receivedDateTime desc",
            "$top": self.settings.graph_page_size,
        }
        if received_since:
            params["$filter"] = f"receivedDateTime ge {isoformat_utc(received_since)}"

        yielded = 0
        while url:
            logger.debug("Fetching Graph messages page %s", url)
            response = self._get(url, params=params)
            payload = response.json()

            for raw in payload.get("value", []):
                attachments = (
                    self._list_file_attachments(raw["id"]) if raw.get("hasAttachments") else []
                )
                yield self._to_message(raw, self._fetch_text_body(raw["id"]), attachments)
                yielded += 1
                if max_messages and yielded >= max_messages:
                    return

            url = payload.get("@odata.nextLink")
            params = None  # only pass params to the first call

    def download_attachment(self, message_id: str, attachment_id: str) -> bytes:
        """Download attachment bytes."""
        url = f"{self.GRAPH_BASE}{self._user_root()}/messages/{message_id}/attachments/{attachment_id}/$value"
        response = self._get(url, stream=True)
        return response.content

    def stage_file(self, name: str, content: bytes, content_type: str) -> str:
        """Upload bytes into the OneDrive staging folder and return the drive item id."""
        folder = self.settings.graph_staging_folder.strip("/")
        path = quote(f"{folder}/{name or 'attachment'}")
        url = f"{self.GRAPH_BASE}{self._user_root()}/drive/root:/{path}:/content"
        response = self._send(
            "PUT",
            url,
            params={"@microsoft.graph.conflictBehavior": "rename"},
            data=content,
            headers={"Content-Type": content_type or "application/octet-stream"},
        )
        if response.status_code >= 400:
            logger.error("Staging upload failed (%s): %s", response.status_code, response.text)
            response.raise_for_status()
        return response.json()["id"]

    def thumbnail_reference(self, item_id: str, size: int) -> Optional[str]:
        """Return the URL of a sized thumbnail once OneDrive has generated one."""
        url = f"{self.GRAPH_BASE}{self._user_root()}/drive/items/{item_id}/thumbnails"
        response = self._send("GET", url)
        if response.status_code != 200:
            return None
        thumbnail_sets = response.json().get("value") or []
        if not thumbnail_sets:
            return None
        set_id = thumbnail_sets[0].get("id", "0")
        return f"{url}/{set_id}/c{size}x{size}/content"

    def fetch_thumbnail(self, reference: str) -> Response:
        """Fetch thumbnail bytes; callers treat anything but 200 as not ready."""
        return self._send("GET", reference)

    def remove_staged_file(self, item_id: str) -> None:
        """Move a staged item to the OneDrive recycle bin."""
        url = f"{self.GRAPH_BASE}{self._user_root()}/drive/items/{item_id}"
        response = self._send("DELETE", url)
        if response.status_code >= 400 and response.status_code != 404:
            logger.error("Removing staged item failed (%s): %s", response.status_code, response.text)
            response.raise_for_status()

    def _get(
        self, url: str, params: dict | None = None, stream: bool = False, headers: dict | None = None
    ) -> Response:
        resp = self._send("GET", url, params=params, stream=stream, headers=headers)
        if resp.status_code >= 400:
            logger.error("Graph request failed (%s): %s", resp.status_code, resp.text)
            resp.raise_for_status()
        return resp

    def _send(self, method: str, url: str, headers: dict | None = None, **kwargs) -> Response:
        merged = {"Authorization": f"Bearer {self._acquire_token()}"}
        merged.update(headers or {})
        return self.session.request(method, url, headers=merged, timeout=30, **kwargs)

    def _acquire_token(self) -> str:
        if self.auth_mode == "client_credentials":
            return self._acquire_token_client_credentials()
        return self._acquire_token_device_flow()

    def _acquire_token_client_credentials(self) -> str:
        result = self.app.acquire_token_silent(self.GRAPH_SCOPE, account=None)
        if not result:
            result = self.app.acquire_token_for_client(scopes=self.GRAPH_SCOPE)
        if "access_token" not in result:
            raise RuntimeError(f"Unable to obtain Graph token: {result.get('error_description')}")
        return result["access_token"]

    def _acquire_token_device_flow(self) -> str:
        accounts = self.app.get_accounts()
        result = None
        if accounts:
            result = self.app.acquire_token_silent(self.scopes, account=accounts[0])
        if not result:
            flow = self.app.initiate_device_flow(scopes=self.scopes)
            if "user_code" not in flow:
                raise RuntimeError(f"Unable to start device code flow: {flow}")
            logger.info(flow.get("message"))
            result = self.app.acquire_token_by_device_flow(flow)
        if "access_token" not in result:
            raise RuntimeError(f"Unable to obtain Graph token: {result.get('error_description')}")
        self._persist_token_cache()
        return result["access_token"]

    def _persist_token_cache(self) -> None:
        if not self._token_cache or not self._token_cache.has_state_changed:
            return
        cache_path: Path = self.settings.graph_token_cache
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(self._token_cache.serialize())

    def _user_root(self) -> str:
        if self.settings.graph_mailbox:
            mailbox = quote(self.settings.graph_mailbox)
            return f"/users/{mailbox}"
        return "/me"

    def _folder_path(self) -> str:
        if self.settings.graph_mail_folder:
            return f"/mailFolders/{quote(self.settings.graph_mail_folder)}"
        return ""

    def _fetch_text_body(self, message_id: str) -> str:
        url = f"{self.GRAPH_BASE}{self._user_root()}/messages/{message_id}"
        response = self._get(
            url, params={"$select": "body"}, headers={"Prefer": TEXT_BODY_PREFERENCE}
        )
        return (response.json().get("body") or {}).get("content") or ""

    def _list_file_attachments(self, message_id: str) -> list[Attachment]:
        url = f"{self.GRAPH_BASE}{self._user_root()}/messages/{message_id}/attachments"
        attachments: List[Attachment] = []

        while url:
            response = self._get(url)
            payload = response.json()
            for raw in payload.get("value", []):
                if raw.get("@odata.type") != "#microsoft.graph.fileAttachment":
                    continue
                content = self._attachment_content(message_id, raw)
                attachments.append(self._to_attachment(raw, content))
            url = payload.get("@odata.nextLink")

        return attachments

    def _attachment_content(self, message_id: str, raw: dict) -> bytes:
        encoded = raw.get("contentBytes")
        if encoded:
            return base64.b64decode(encoded)
        return self.download_attachment(message_id, raw["id"])

    @staticmethod
    def _to_message(raw: dict, body_text: str, attachments: list[Attachment]) -> Message:
        body = raw.get("body") or {}
        body_html = body.get("content", "") if body.get("contentType", "").lower() == "html" else ""
        received = raw.get("receivedDateTime")
        return Message(
            subject=raw.get("subject") or "",
            body_text=body_text,
            body_html=body_html,
            received=parse_graph_datetime(received) if received else None,
            attachments=attachments,
            message_id=raw["id"],
            internet_message_id=raw.get("internetMessageId", ""),
        )

    @staticmethod
    def _to_attachment(raw: dict, content: bytes) -> Attachment:
        return Attachment(
            name=raw.get("name", ""),
            mime_type=raw.get("contentType") or "application/octet-stream",
            content=content,
            content_id=raw.get("contentId"),
        )
