"""Pydantic models for the Raindrop.io listing envelope.

Only the envelope is typed here; individual items stay raw until
``to_records`` converts them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime  # noqa: TC003 - used in dataclass annotations
from typing import Any

from pydantic import BaseModel, Field

MAX_PAGE_SIZE = 50


class RaindropPage(BaseModel):
    """One page of ``GET /raindrops/{collectionId}``."""

    items: list[Any] = Field(strict=True)
    count: int | None = None
    result: bool | None = None

    model_config = {"extra": "ignore"}


@dataclass(frozen=True)
class FolderQuery:
    """Options for a single-page folder fetch.

    The ``created`` filter is sent only when both dates are set.
    """

    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = 0
    page_size: int = MAX_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page < 0:
            msg = "page must be zero or positive"
            raise ValueError(msg)
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            msg = f"page_size must be between 1 and {MAX_PAGE_SIZE}"
            raise ValueError(msg)

    @property
    def has_date_range(self) -> bool:
        return self.from_date is not None and self.to_date is not None
