"""Raindrop.io API client."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from bookmark_mailer.adapters.raindrop.models import MAX_PAGE_SIZE, FolderQuery, RaindropPage
from bookmark_mailer.core.time_utils import to_iso_z, utc_now
from bookmark_mailer.domain.exceptions import ConfigurationError, ErrorKind, UpstreamError
from bookmark_mailer.domain.models.bookmark import to_records

if TYPE_CHECKING:
    from typing import Self

    from bookmark_mailer.domain.models.bookmark import BookmarkRecord

logger = logging.getLogger(__name__)

RAINDROP_API_URL = "https://api.raindrop.io/rest/v1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_LOOKBACK = timedelta(days=7)
# Circuit breaker against an upstream that keeps reporting more items.
MAX_PAGES = 100
ALL_BOOKMARKS_COLLECTION = 0


def _created_filter(from_date: datetime, to_date: datetime) -> str:
    return f"{to_iso_z(from_date)}..{to_iso_z(to_date)}"


def _upstream_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        message = payload.get("errorMessage") or payload.get("error")
        if isinstance(message, str) and message:
            return message
    return None


def translate_http_error(exc: httpx.HTTPError, operation: str) -> UpstreamError:
    """Map an httpx failure onto the digest error taxonomy.

    Args:
        exc: Status or transport error raised by httpx
        operation: Name of the API operation for diagnostics

    Returns:
        The classified error (never raised here)

    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        upstream_message = _upstream_message(exc.response)
        details: dict[str, Any] = {"operation": operation}
        if upstream_message:
            details["upstream_message"] = upstream_message

        if status in (401, 403):
            kind = ErrorKind.AUTH_ERROR
            message = "Raindrop.io rejected the credentials; check the API token and its permissions"
        elif status == 429:
            kind = ErrorKind.RATE_LIMITED
            message = "Raindrop.io rate limit exceeded"
        elif status >= 500:
            kind = ErrorKind.UPSTREAM_UNAVAILABLE
            message = "Raindrop.io server error"
        else:
            kind = ErrorKind.UPSTREAM_REQUEST_ERROR
            message = f"Raindrop.io API error ({status})"
            if upstream_message:
                message = f"{message}: {upstream_message}"
        return UpstreamError(message, kind=kind, status_code=status, details=details)

    return UpstreamError(
        f"Network error: cannot reach Raindrop.io API ({type(exc).__name__}: {exc})",
        kind=ErrorKind.NETWORK_ERROR,
        details={"operation": operation},
    )


class RaindropClient:
    """Async HTTP client for the Raindrop.io REST API.

    Performs no retries: every failure is translated and propagated.
    """

    def __init__(
        self,
        api_token: str,
        api_url: str = RAINDROP_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        page_size: int = MAX_PAGE_SIZE,
        max_pages: int = MAX_PAGES,
    ) -> None:
        """Initialize Raindrop.io client.

        Args:
            api_token: Raindrop.io test token or OAuth access token
            api_url: Base URL for the REST API
            timeout: Request timeout in seconds
            page_size: Items requested per page (at most 50)
            max_pages: Hard ceiling on pages walked by ``fetch_recent``
        """
        if not api_token or not api_token.strip():
            msg = "Raindrop.io API token is required (set RAINDROP_API_TOKEN)"
            raise ConfigurationError(msg)
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            msg = f"page_size must be between 1 and {MAX_PAGE_SIZE}"
            raise ValueError(msg)
        if max_pages < 1:
            msg = "max_pages must be positive"
            raise ValueError(msg)

        self.api_url = api_url.rstrip("/")
        self.api_token = api_token.strip()
        self.timeout = timeout
        self.page_size = page_size
        self.max_pages = max_pages
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                "Authorization": f"Bearer {self.api_token}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Client not initialized. Use async context manager."
            raise RuntimeError(msg)
        return self._client

    async def _get(self, path: str, operation: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            error = translate_http_error(exc, operation)
            logger.error(
                "raindrop_request_failed",
                extra={
                    "operation": operation,
                    "kind": error.kind.value,
                    "status_code": error.status_code,
                    "error": str(exc),
                },
            )
            raise error from exc

        try:
            return response.json()
        except ValueError as exc:
            msg = "Raindrop.io returned a body that is not valid JSON"
            raise UpstreamError(
                msg,
                kind=ErrorKind.UPSTREAM_PROTOCOL_ERROR,
                status_code=response.status_code,
                details={"operation": operation},
            ) from exc

    async def test_connection(self) -> bool:
        """Check that the API is reachable and the token is accepted."""
        await self._get("/user", "test_connection")
        logger.info("raindrop_connection_ok")
        return True

    async def _fetch_page(self, collection_id: int | str, params: dict[str, Any]) -> RaindropPage:
        data = await self._get(f"/raindrops/{collection_id}", "fetch_page", params)
        try:
            return RaindropPage.model_validate(data)
        except PydanticValidationError as exc:
            msg = "Invalid response format from Raindrop.io API: expected an 'items' list"
            raise UpstreamError(
                msg,
                kind=ErrorKind.UPSTREAM_PROTOCOL_ERROR,
                details={"operation": "fetch_page", "page": params.get("page")},
            ) from exc

    async def fetch_recent(
        self,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[BookmarkRecord]:
        """Fetch every bookmark created within ``[from_date, to_date]``.

        Pages are walked sequentially until a short page arrives, the first
        page's reported ``count`` is reached, or ``max_pages`` is hit.

        Args:
            from_date: Start of the window (default: ``to_date`` minus 7 days)
            to_date: End of the window (default: now)

        Returns:
            Validated records in arrival order

        Raises:
            UpstreamError: On transport, status or response-shape failures

        """
        if to_date is None:
            to_date = utc_now()
        if from_date is None:
            from_date = to_date - DEFAULT_LOOKBACK

        created = _created_filter(from_date, to_date)
        records: list[BookmarkRecord] = []
        total_count: int | None = None
        page = 0

        while True:
            result = await self._fetch_page(
                ALL_BOOKMARKS_COLLECTION,
                {"created": created, "perpage": self.page_size, "page": page},
            )
            if total_count is None:
                # The first page's count is trusted for the whole walk.
                total_count = result.count or 0

            records.extend(to_records(result.items))
            logger.debug(
                "raindrop_page_fetched",
                extra={"page": page, "items": len(result.items), "accumulated": len(records)},
            )

            has_more = len(result.items) == self.page_size and len(records) < total_count
            if not has_more:
                break

            page += 1
            if page >= self.max_pages:
                logger.warning(
                    "raindrop_max_pages_reached",
                    extra={
                        "max_pages": self.max_pages,
                        "accumulated": len(records),
                        "reported_count": total_count,
                    },
                )
                break

        logger.info(
            "raindrop_fetched_recent_bookmarks",
            extra={
                "count": len(records),
                "pages": min(page + 1, self.max_pages),
                "created_filter": created,
            },
        )
        return records

    async def fetch_by_folder(
        self,
        folder_id: int | str = ALL_BOOKMARKS_COLLECTION,
        query: FolderQuery | None = None,
    ) -> list[BookmarkRecord]:
        """Fetch a single page of bookmarks from one collection.

        Returns an empty list when the response carries no item list.
        """
        query = query or FolderQuery()
        params: dict[str, Any] = {"perpage": query.page_size, "page": query.page}
        if query.has_date_range:
            params["created"] = _created_filter(query.from_date, query.to_date)  # type: ignore[arg-type]

        data = await self._get(f"/raindrops/{folder_id}", "fetch_by_folder", params)
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.info("raindrop_folder_empty", extra={"folder_id": folder_id})
            return []
        return to_records(items)


__all__ = [
    "MAX_PAGES",
    "RAINDROP_API_URL",
    "RaindropClient",
    "translate_http_error",
]
