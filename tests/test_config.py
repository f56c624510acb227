from __future__ import annotations

import pytest
from pydantic import ValidationError

from invoice_archiver.config import Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "GRAPH_MAILBOX",
        "GRAPH_AUTH_MODE",
        "GRAPH_CLIENT_SECRET",
        "BUSINESS_CODES",
        "DEFAULT_BUSINESS_CODE",
        "THUMBNAIL_RETRY_DELAYS",
        "PAPERLESS_TAG_IDS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.business_codes == ["AIRBNB", "TF", "TMM", "DCL", "HSA"]
    assert settings.default_business_code == "DCL"
    assert settings.thumbnail_retry_delays == [2.0, 3.0, 4.0, 5.0, 5.0]
    assert settings.thumbnail_size == 1600
    assert settings.graph_scopes == ["Mail.Read", "Files.ReadWrite"]
    assert settings.include_attachment_previews is True


def test_business_codes_are_split_and_upper_cased(monkeypatch):
    monkeypatch.setenv("BUSINESS_CODES", "tf; Xyz ,,")
    monkeypatch.setenv("DEFAULT_BUSINESS_CODE", " misc ")

    settings = Settings(_env_file=None)

    assert settings.business_codes == ["TF", "XYZ"]
    assert settings.default_business_code == "MISC"


def test_decreasing_retry_delays_are_rejected(monkeypatch):
    monkeypatch.setenv("THUMBNAIL_RETRY_DELAYS", "5;2")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_client_credentials_requires_secret(monkeypatch):
    monkeypatch.setenv("GRAPH_AUTH_MODE", "client_credentials")
    monkeypatch.setenv("GRAPH_MAILBOX", "invoices@example.com")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_paperless_tag_ids(monkeypatch):
    monkeypatch.setenv("PAPERLESS_TAG_IDS", "3; 7")
    assert Settings(_env_file=None).paperless_tag_ids == [3, 7]
