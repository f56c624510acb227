"""Configuration management for the Outlook invoice archiver."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal, Sequence

from dotenv import load_dotenv
from pydantic import Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env early so BaseSettings can pick values up seamlessly.
load_dotenv()

DEFAULT_BUSINESS_CODES = ("AIRBNB", "TF", "TMM", "DCL", "HSA")
DEFAULT_RETRY_DELAYS = (2.0, 3.0, 4.0, 5.0, 5.0)


def _split_list(value: str | Sequence[str] | None, coerce_lower: bool = True) -> list[str]:
    """Turn delimiter-separated env strings into cleaned lists."""
    if value is None:
        return []
    if isinstance(value, str):
        items = re.split(r"[;,]", value)
    else:
        items = list(value)
    cleaned: list[str] = []
    for item in items:
        trimmed = item.strip()
        if not trimmed:
            continue
        cleaned.append(trimmed.lower() if coerce_lower else trimmed)
    return cleaned


class Settings(BaseSettings):
    """App configuration derived from environment variables."""

    graph_tenant_id: str | None = Field(None, alias="GRAPH_TENANT_ID")
    graph_client_id: str = Field(..., alias="GRAPH_CLIENT_ID")
    graph_client_secret: str | None = Field(None, alias="GRAPH_CLIENT_SECRET")
    graph_mailbox: str | None = Field(None, alias="GRAPH_MAILBOX")
    graph_auth_mode: Literal["client_credentials", "device_code"] = Field(
        "device_code", alias="GRAPH_AUTH_MODE"
    )
    graph_authority: str | None = Field(None, alias="GRAPH_AUTHORITY")
    graph_scopes_raw: str = Field("Mail.Read;Files.ReadWrite", alias="GRAPH_SCOPES")
    graph_page_size: int = Field(25, alias="GRAPH_PAGE_SIZE")
    graph_mail_folder: str | None = Field("Inbox", alias="GRAPH_MAIL_FOLDER")
    graph_token_cache: Path = Field(Path("data/msal_token_cache.bin"), alias="GRAPH_TOKEN_CACHE")
    graph_staging_folder: str = Field("InvoiceArchiver/staging", alias="GRAPH_STAGING_FOLDER")

    business_codes_raw: str = Field(";".join(DEFAULT_BUSINESS_CODES), alias="BUSINESS_CODES")
    default_business_code: str = Field("DCL", alias="DEFAULT_BUSINESS_CODE")

    thumbnail_retry_delays_raw: str = Field(
        ";".join(f"{delay:g}" for delay in DEFAULT_RETRY_DELAYS), alias="THUMBNAIL_RETRY_DELAYS"
    )
    thumbnail_size: int = Field(1600, alias="THUMBNAIL_SIZE", gt=0)
    include_attachment_previews: bool = Field(True, alias="INCLUDE_ATTACHMENT_PREVIEWS")
    save_attachments_separately: bool = Field(True, alias="SAVE_ATTACHMENTS_SEPARATELY")

    paperless_base_url: HttpUrl = Field(..., alias="PAPERLESS_BASE_URL")
    paperless_api_token: str = Field(..., alias="PAPERLESS_API_TOKEN")
    paperless_document_type_id: int | None = Field(None, alias="PAPERLESS_DOCUMENT_TYPE_ID")
    paperless_correspondent_id: int | None = Field(
        None, alias="PAPERLESS_CORRESPONDENT_ID"
    )
    paperless_tag_ids_raw: str = Field("", alias="PAPERLESS_TAG_IDS")

    processed_ledger_db: Path = Field(Path("data/archived_messages.db"), alias="PROCESSED_LEDGER_DB")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_authentication(self):
        if self.graph_auth_mode == "client_credentials":
            if not self.graph_client_secret:
                raise ValueError("GRAPH_CLIENT_SECRET is required for client_credentials mode.")
            if not self.graph_mailbox:
                raise ValueError("GRAPH_MAILBOX is required for client_credentials mode.")
            if not (self.graph_tenant_id or self.graph_authority):
                raise ValueError(
                    "GRAPH_TENANT_ID or GRAPH_AUTHORITY must be provided for client_credentials mode."
                )
        else:
            if self.graph_mailbox:
                raise ValueError(
                    "GRAPH_MAILBOX must be omitted for device_code mode; the signed-in mailbox is used."
                )
        return self

    @model_validator(mode="after")
    def _validate_thumbnail_delays(self):
        delays = self.thumbnail_retry_delays
        if any(delay < 0 for delay in delays):
            raise ValueError("THUMBNAIL_RETRY_DELAYS must not contain negative values.")
        if any(later < earlier for earlier, later in zip(delays, delays[1:])):
            raise ValueError("THUMBNAIL_RETRY_DELAYS must be non-decreasing.")
        return self

    @field_validator(
        "graph_tenant_id",
        "graph_client_secret",
        "graph_mailbox",
        "graph_authority",
        "paperless_document_type_id",
        "paperless_correspondent_id",
        "graph_mail_folder",
        mode="before",
    )
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("graph_mail_folder", mode="before")
    @classmethod
    def _normalize_mail_folder(cls, value):
        if value is None:
            return value
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("default_business_code", mode="before")
    @classmethod
    def _normalize_default_code(cls, value):
        if isinstance(value, str):
            stripped = value.strip().upper()
            return stripped or "DCL"
        return value

    @property
    def authority_url(self) -> str:
        if self.graph_authority:
            return self.graph_authority.rstrip("/")
        if self.graph_tenant_id:
            return f"https://login.microsoftonline.com/{self.graph_tenant_id}"
        return "https://login.microsoftonline.com/consumers"

    @property
    def graph_scopes(self) -> list[str]:
        """Scopes requested for delegated Graph auth."""
        scopes = _split_list(self.graph_scopes_raw, coerce_lower=False)
        return scopes or ["Mail.Read", "Files.ReadWrite"]

    @property
    def business_codes(self) -> list[str]:
        """Whitelisted business codes, upper-cased."""
        codes = [code.upper() for code in _split_list(self.business_codes_raw, coerce_lower=False)]
        return codes or list(DEFAULT_BUSINESS_CODES)

    @property
    def thumbnail_retry_delays(self) -> list[float]:
        raw_items = _split_list(self.thumbnail_retry_delays_raw, coerce_lower=False)
        return [float(item) for item in raw_items] or list(DEFAULT_RETRY_DELAYS)

    @property
    def paperless_tag_ids(self) -> list[int]:
        raw_items = _split_list(self.paperless_tag_ids_raw, coerce_lower=False)
        return [int(item) for item in raw_items]
