"""Render bookmark records into the weekly digest.

The body uses Redmine/Textile markup that downstream renderers depend on:
``h4. [Folder]`` headings and ``* "Title":URL`` lines, with favorites marked by
a trailing `` %{color: red}★%`` token. All functions here are pure.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime, tzinfo

from bookmark_mailer.core.collation import CollationStrategy, folder_sort_key
from bookmark_mailer.core.time_utils import utc_now
from bookmark_mailer.domain.models.bookmark import UNSORTED_FOLDER, BookmarkRecord
from bookmark_mailer.domain.models.digest import DigestDocument

DIGEST_TITLE = "今週のブックマークダイジェスト"
EMPTY_PERIOD_MESSAGE = "今週は新しいブックマークがありませんでした。"
SUBJECT_PREFIX = "週次ブックマークダイジェスト"
FAVORITE_MARKER = "%{color: red}★%"


def format_date(value: datetime, tz: tzinfo = UTC) -> str:
    """Render ``value`` as zero-padded ``YYYY/MM/DD``.

    Aware datetimes are converted to ``tz`` first; naive ones are used as given.
    """
    moment = value.astimezone(tz) if value.tzinfo is not None else value
    return f"{moment.year:04d}/{moment.month:02d}/{moment.day:02d}"


def format_date_range_label(start: datetime, end: datetime, *, tz: tzinfo = UTC) -> str:
    return f"{format_date(start, tz)} - {format_date(end, tz)}"


def generate_subject(
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    now: Callable[[], datetime] | None = None,
    tz: tzinfo = UTC,
) -> str:
    """Build the mail subject from the end of the period (or the current time)."""
    target = end if end is not None else (now or utc_now)()
    return f"{SUBJECT_PREFIX} - {format_date(target, tz)}"


def group_by_folder(
    records: Iterable[BookmarkRecord],
    *,
    collation: CollationStrategy = CollationStrategy.UNICODE,
) -> list[tuple[str, list[BookmarkRecord]]]:
    """Group records by exact folder name.

    Groups are ordered by collated folder name; records inside a group are
    newest first, keeping input order for equal timestamps.
    """
    grouped: dict[str, list[BookmarkRecord]] = {}
    for record in records:
        grouped.setdefault(record.folder or UNSORTED_FOLDER, []).append(record)

    ordered_names = sorted(grouped, key=lambda name: folder_sort_key(name, collation))
    return [
        (name, sorted(grouped[name], key=lambda record: record.created_at, reverse=True))
        for name in ordered_names
    ]


def format_bookmark_line(record: BookmarkRecord) -> str:
    line = f'* "{record.title}":{record.url}'
    if record.is_favorite:
        line += f" {FAVORITE_MARKER}"
    return line


def format_folder_section(folder: str, records: Sequence[BookmarkRecord]) -> str:
    lines = [f"h4. [{folder}]"]
    lines.extend(format_bookmark_line(record) for record in records)
    return "\n".join(lines)


def _title_line(date_range_label: str | None) -> str:
    if date_range_label:
        return f"{DIGEST_TITLE} ({date_range_label})"
    return DIGEST_TITLE


def format_header(record_count: int, date_range_label: str | None = None) -> str:
    return f"{_title_line(date_range_label)}\n\n合計 {record_count} 件のブックマークが見つかりました。"


def format_empty_message(date_range_label: str | None = None) -> str:
    return f"{_title_line(date_range_label)}\n\n{EMPTY_PERIOD_MESSAGE}"


def format_body(
    records: Sequence[BookmarkRecord] | None,
    *,
    date_range_label: str | None = None,
    include_header: bool = True,
    collation: CollationStrategy = CollationStrategy.UNICODE,
) -> str:
    """Render the digest body.

    Args:
        records: Records to render; ``None`` or empty yields the empty-period message
        date_range_label: Optional ``YYYY/MM/DD - YYYY/MM/DD`` label for the title line
        include_header: Prepend the title line and total count
        collation: Folder ordering strategy

    Returns:
        Plain-text body

    """
    if not records:
        return format_empty_message(date_range_label)

    sections = [
        format_folder_section(folder, members)
        for folder, members in group_by_folder(records, collation=collation)
    ]
    body = "\n\n".join(sections)
    if include_header:
        body = f"{format_header(len(records), date_range_label)}\n\n{body}"
    return body


def build_digest(
    records: Sequence[BookmarkRecord] | None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    from_addr: str | None = None,
    to_addr: str | None = None,
    tz: tzinfo = UTC,
    collation: CollationStrategy = CollationStrategy.UNICODE,
) -> DigestDocument:
    """Compose subject, body and metadata for one digest."""
    date_range_label = (
        format_date_range_label(start, end, tz=tz)
        if start is not None and end is not None
        else None
    )
    return DigestDocument(
        subject=generate_subject(start, end, tz=tz),
        body=format_body(
            records,
            date_range_label=date_range_label,
            include_header=True,
            collation=collation,
        ),
        record_count=len(records) if records else 0,
        date_range_label=date_range_label,
        from_addr=from_addr,
        to_addr=to_addr,
    )


__all__ = [
    "DIGEST_TITLE",
    "EMPTY_PERIOD_MESSAGE",
    "FAVORITE_MARKER",
    "SUBJECT_PREFIX",
    "build_digest",
    "format_bookmark_line",
    "format_body",
    "format_date",
    "format_date_range_label",
    "format_empty_message",
    "format_folder_section",
    "format_header",
    "generate_subject",
    "group_by_folder",
]
