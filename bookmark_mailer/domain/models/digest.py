from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class DigestDocument:
    """Rendered digest for one run. Never persisted."""

    subject: str
    body: str
    record_count: int
    date_range_label: str | None = None
    from_addr: str | None = None
    to_addr: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.record_count == 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
