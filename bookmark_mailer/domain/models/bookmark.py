"""Bookmark record model and conversion from raw Raindrop.io items.

Raw API items are untyped mappings; they are converted into
:class:`BookmarkRecord` here and nowhere else.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from bookmark_mailer.core.time_utils import ensure_aware, utc_now
from bookmark_mailer.core.url_utils import validate_absolute_url
from bookmark_mailer.domain.exceptions import ErrorKind, ValidationError

logger = logging.getLogger(__name__)

UNTITLED_TITLE = "タイトルなし"
UNSORTED_FOLDER = "未分類"


class BookmarkRecord(BaseModel):
    """A validated bookmark ready for formatting."""

    model_config = ConfigDict(frozen=True, strict=True)

    id: str | int
    title: str
    url: str
    folder: str
    is_favorite: bool
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _validate_id(cls, value: Any) -> Any:
        if isinstance(value, bool):
            msg = "id must be a string or an integer"
            raise ValueError(msg)
        if value is None or (isinstance(value, str) and not value.strip()):
            msg = "id is required"
            raise ValueError(msg)
        return value

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value: Any) -> Any:
        if value is None or value == "":
            return UNTITLED_TITLE
        return value

    @field_validator("folder", mode="before")
    @classmethod
    def _default_folder(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return UNSORTED_FOLDER
        return value

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        validate_absolute_url(value)
        return value

    @field_validator("created_at")
    @classmethod
    def _validate_created_at(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    def to_plain_dict(self) -> dict[str, Any]:
        """Return a JSON-safe mapping of the record."""
        return self.model_dump(mode="json")

    def __str__(self) -> str:
        return f'Bookmark(id={self.id}, title="{self.title}", folder="{self.folder}")'


@dataclass(frozen=True)
class ConversionFailure:
    """A raw item that could not be converted, by position in its batch."""

    index: int
    reason: str

    def __str__(self) -> str:
        return f"item {self.index}: {self.reason}"


@dataclass
class ConversionResult:
    """Records converted from a batch plus the items that were dropped."""

    records: list[BookmarkRecord] = field(default_factory=list)
    failures: list[ConversionFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a raw creation timestamp; returns None when absent or unparsable."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return ensure_aware(datetime.fromisoformat(value.strip()))
    except ValueError:
        logger.debug("bookmark_timestamp_unparsable", extra={"value": repr(value)[:100]})
        return None


def _derive_folder(raw_item: Mapping[str, Any]) -> str:
    tags = raw_item.get("tags")
    if isinstance(tags, Sequence) and not isinstance(tags, str) and tags:
        first = tags[0]
        if isinstance(first, str) and first.strip():
            return first

    collection = raw_item.get("collection")
    if isinstance(collection, Mapping):
        title = collection.get("title")
        if isinstance(title, str) and title.strip():
            return title

    return UNSORTED_FOLDER


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "record"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def to_record(
    raw_item: Mapping[str, Any],
    *,
    now: Callable[[], datetime] | None = None,
) -> BookmarkRecord:
    """Convert one raw Raindrop.io item into a validated record.

    Args:
        raw_item: Item mapping as returned by the listing endpoint
        now: Clock used when the item has no usable creation timestamp

    Returns:
        The validated record

    Raises:
        ValidationError: ``MALFORMED_RECORD`` when the item lacks an id or link,
            or the derived record fails validation

    """
    if not isinstance(raw_item, Mapping):
        msg = "Raw bookmark item must be a mapping"
        raise ValidationError(
            msg,
            kind=ErrorKind.MALFORMED_RECORD,
            details={"type": type(raw_item).__name__},
        )

    raw_id = raw_item.get("_id")
    if not raw_id:
        msg = "Raw bookmark item has no '_id'"
        raise ValidationError(msg, kind=ErrorKind.MALFORMED_RECORD)

    link = raw_item.get("link")
    if not link:
        msg = "Raw bookmark item has no 'link'"
        raise ValidationError(msg, kind=ErrorKind.MALFORMED_RECORD, details={"id": str(raw_id)})

    created_at = parse_timestamp(raw_item.get("created"))
    if created_at is None:
        created_at = (now or utc_now)()

    try:
        return BookmarkRecord(
            id=raw_id,
            title=raw_item.get("title") or UNTITLED_TITLE,
            url=link,
            folder=_derive_folder(raw_item),
            is_favorite=bool(raw_item.get("important")),
            created_at=created_at,
        )
    except PydanticValidationError as exc:
        msg = f"Bookmark record failed validation: {_describe(exc)}"
        raise ValidationError(
            msg, kind=ErrorKind.MALFORMED_RECORD, details={"id": str(raw_id)}
        ) from exc


def _ensure_sequence(raw_items: Any) -> Sequence[Any]:
    if isinstance(raw_items, (str, bytes, bytearray)) or not isinstance(raw_items, Sequence):
        msg = "Raw bookmark items must be an ordered sequence"
        raise ValidationError(
            msg,
            kind=ErrorKind.INVALID_BATCH_INPUT,
            details={"type": type(raw_items).__name__},
        )
    return raw_items


def convert_records(
    raw_items: Sequence[Any],
    *,
    now: Callable[[], datetime] | None = None,
) -> ConversionResult:
    """Convert a batch, collecting per-item failures instead of raising.

    Raises:
        ValidationError: ``INVALID_BATCH_INPUT`` when ``raw_items`` is not a sequence

    """
    items = _ensure_sequence(raw_items)
    result = ConversionResult()
    for index, raw_item in enumerate(items):
        try:
            result.records.append(to_record(raw_item, now=now))
        except ValidationError as exc:
            result.failures.append(ConversionFailure(index=index, reason=exc.message))
    return result


def to_records(
    raw_items: Sequence[Any],
    *,
    now: Callable[[], datetime] | None = None,
) -> list[BookmarkRecord]:
    """Convert a batch, dropping malformed items with a single batch warning."""
    result = convert_records(raw_items, now=now)
    if result.has_failures:
        logger.warning(
            "bookmark_conversion_failures",
            extra={
                "failed": len(result.failures),
                "converted": len(result.records),
                "failures": [str(failure) for failure in result.failures],
            },
        )
    return result.records


def get_validation_errors(data: Mapping[str, Any]) -> list[str]:
    """Return the validation errors for already-derived record fields."""
    try:
        BookmarkRecord.model_validate(dict(data))
    except PydanticValidationError as exc:
        return [_describe(exc)]
    return []


def is_valid_record_data(data: Mapping[str, Any]) -> bool:
    return not get_validation_errors(data)


def is_valid_api_item(raw_item: Any) -> bool:
    try:
        to_record(raw_item)
    except ValidationError:
        return False
    return True


__all__ = [
    "UNSORTED_FOLDER",
    "UNTITLED_TITLE",
    "BookmarkRecord",
    "ConversionFailure",
    "ConversionResult",
    "convert_records",
    "get_validation_errors",
    "is_valid_api_item",
    "is_valid_record_data",
    "parse_timestamp",
    "to_record",
    "to_records",
]
