from __future__ import annotations

import os
import time

import pytest

# Settings are validated at construction; provide the required values for tests.
os.environ.setdefault("GRAPH_CLIENT_ID", "test-client-id")
os.environ.setdefault("PAPERLESS_BASE_URL", "http://paperless.test")
os.environ.setdefault("PAPERLESS_API_TOKEN", "test-token")


@pytest.fixture(autouse=True)
def _utc_local_time(monkeypatch):
    # Message dates are stamped in local time; keep the suite independent of the host zone.
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
