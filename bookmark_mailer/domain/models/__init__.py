from bookmark_mailer.domain.models.bookmark import (
    UNSORTED_FOLDER,
    UNTITLED_TITLE,
    BookmarkRecord,
    ConversionFailure,
    ConversionResult,
    convert_records,
    to_record,
    to_records,
)
from bookmark_mailer.domain.models.digest import DigestDocument

__all__ = [
    "UNSORTED_FOLDER",
    "UNTITLED_TITLE",
    "BookmarkRecord",
    "ConversionFailure",
    "ConversionResult",
    "DigestDocument",
    "convert_records",
    "to_record",
    "to_records",
]
