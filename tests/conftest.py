"""Shared fixtures for the bookmark mailer tests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from bookmark_mailer.config import load_config
from bookmark_mailer.domain.models.bookmark import BookmarkRecord

_CONFIG_ENV = (
    "RAINDROP_API_TOKEN",
    "RAINDROP_API_URL",
    "RAINDROP_TIMEOUT_SEC",
    "EMAIL_FROM",
    "EMAIL_TO",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "PARAMETER_STORE_PATH",
    "DIGEST_LOOKBACK_DAYS",
    "DIGEST_TIMEZONE",
    "FOLDER_COLLATION",
    "DIGEST_SCHEDULE",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> None:
    """Keep the developer's environment and any .env file out of the tests."""
    for name in _CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def make_raw_item(**overrides: Any) -> dict[str, Any]:
    item: dict[str, Any] = {
        "_id": 101,
        "title": "Example",
        "link": "https://example.com/article",
        "tags": ["コーディング"],
        "important": False,
        "created": "2024-03-04T10:00:00.000Z",
    }
    item.update(overrides)
    return item


def make_record(**overrides: Any) -> BookmarkRecord:
    fields: dict[str, Any] = {
        "id": 1,
        "title": "Example",
        "url": "https://example.com/",
        "folder": "コーディング",
        "is_favorite": False,
        "created_at": datetime(2024, 3, 4, 10, 0, tzinfo=UTC),
    }
    fields.update(overrides)
    return BookmarkRecord(**fields)


@pytest.fixture
def raw_item() -> dict[str, Any]:
    return make_raw_item()


@pytest.fixture
def app_config():
    return load_config(
        RAINDROP_API_TOKEN="test-token",
        EMAIL_FROM="sender@example.com",
        EMAIL_TO="reader@example.com",
    )
