from __future__ import annotations

from urllib.parse import urlparse

# Bookmarks may point at any scheme; only the shape of the URL is checked.
_SCHEME_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789+-.")
# Schemes whose URLs are meaningless without a host (``file`` may omit it).
_HOST_REQUIRED_SCHEMES = frozenset({"http", "https", "ftp", "ws", "wss"})


def validate_absolute_url(url: str) -> None:
    """Validate that ``url`` is a well-formed absolute URL.

    Any scheme is accepted, including hostless ones such as ``file:///path``
    and ``mailto:user@host``. Embedded spaces are allowed; control characters
    are not.

    Args:
        url: URL string to validate

    Raises:
        ValueError: If the URL is empty, relative or malformed

    """
    if not isinstance(url, str):
        msg = "URL must be a string"
        raise ValueError(msg)
    if not url.strip():
        msg = "URL cannot be empty"
        raise ValueError(msg)
    if any(ord(char) < 32 or ord(char) == 127 for char in url):
        msg = "URL contains control characters"
        raise ValueError(msg)

    try:
        parsed = urlparse(url)
        # Accessing port validates the numeric part of the netloc
        _ = parsed.port
    except ValueError as exc:
        msg = f"URL could not be parsed: {exc}"
        raise ValueError(msg) from exc

    if not parsed.scheme or not parsed.scheme[0].isalpha():
        msg = "URL must include a scheme"
        raise ValueError(msg)
    if any(char not in _SCHEME_CHARS for char in parsed.scheme):
        msg = f"URL scheme '{parsed.scheme}' is malformed"
        raise ValueError(msg)
    if not url.partition(":")[2]:
        msg = "URL has nothing after the scheme"
        raise ValueError(msg)
    if parsed.scheme.lower() in _HOST_REQUIRED_SCHEMES and not parsed.hostname:
        msg = f"{parsed.scheme} URL must include a host"
        raise ValueError(msg)
