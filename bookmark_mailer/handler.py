"""AWS Lambda entry point for the weekly digest."""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from bookmark_mailer.application.digest_runner import run_digest
from bookmark_mailer.config import load_config
from bookmark_mailer.core.logging_utils import generate_correlation_id, setup_json_logging
from bookmark_mailer.core.time_utils import to_iso_z, utc_now
from bookmark_mailer.domain.exceptions import ConfigurationError, DigestError, ErrorKind

if TYPE_CHECKING:
    from bookmark_mailer.application.credentials import ParameterSource
    from bookmark_mailer.application.digest_runner import ClientFactory, MailerFactory
    from bookmark_mailer.config import AppConfig

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Weekly bookmark digest completed successfully"


class ErrorSeverity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


_UPSTREAM_KINDS = frozenset(
    {
        ErrorKind.UPSTREAM_PROTOCOL_ERROR,
        ErrorKind.UPSTREAM_REQUEST_ERROR,
        ErrorKind.AUTH_ERROR,
        ErrorKind.RATE_LIMITED,
    }
)
_UNAVAILABLE_KINDS = frozenset({ErrorKind.NETWORK_ERROR, ErrorKind.UPSTREAM_UNAVAILABLE})

_SEVERITY_BY_KIND: dict[ErrorKind, ErrorSeverity] = {
    ErrorKind.CONFIGURATION_ERROR: ErrorSeverity.CRITICAL,
    ErrorKind.AUTH_ERROR: ErrorSeverity.CRITICAL,
    ErrorKind.UPSTREAM_PROTOCOL_ERROR: ErrorSeverity.HIGH,
    ErrorKind.UPSTREAM_REQUEST_ERROR: ErrorSeverity.HIGH,
    ErrorKind.MAIL_DELIVERY_ERROR: ErrorSeverity.HIGH,
}


def classify_error(exc: BaseException) -> tuple[ErrorKind, ErrorSeverity]:
    kind = exc.kind if isinstance(exc, DigestError) else ErrorKind.UNKNOWN_ERROR
    return kind, _SEVERITY_BY_KIND.get(kind, ErrorSeverity.MEDIUM)


def should_alert(severity: ErrorSeverity) -> bool:
    return severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH)


def _status_and_message(kind: ErrorKind) -> tuple[int, str]:
    if kind == ErrorKind.CONFIGURATION_ERROR:
        return 500, "A configuration error occurred"
    if kind in _UPSTREAM_KINDS:
        return 502, "The bookmark service returned an error"
    if kind == ErrorKind.MAIL_DELIVERY_ERROR:
        return 502, "The mail delivery service returned an error"
    if kind in _UNAVAILABLE_KINDS:
        return 503, "A network error occurred"
    return 500, "An unexpected system error occurred"


def error_response(exc: BaseException, *, timestamp: str | None = None) -> dict[str, Any]:
    """Build the Lambda response for a failed run.

    The body never carries the internal message; it is only logged.
    """
    kind, severity = classify_error(exc)
    status_code, message = _status_and_message(kind)
    return {
        "statusCode": status_code,
        "body": json.dumps(
            {
                "message": message,
                "error": {
                    "type": kind.value,
                    "severity": severity.value,
                    "timestamp": timestamp or to_iso_z(utc_now()),
                },
            },
            ensure_ascii=False,
        ),
    }


def _correlation_id(context: Any) -> str:
    request_id = getattr(context, "aws_request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    return generate_correlation_id()


async def handle(
    event: Any,
    context: Any,
    *,
    config: AppConfig | None = None,
    parameter_store: ParameterSource | None = None,
    client_factory: ClientFactory | None = None,
    mailer_factory: MailerFactory | None = None,
) -> dict[str, Any]:
    """Run one digest cycle and translate the outcome into a Lambda response."""
    correlation_id = _correlation_id(context)
    logger.info(
        "lambda_invocation_started",
        extra={
            "correlation_id": correlation_id,
            "event_source": event.get("source") if isinstance(event, dict) else None,
        },
    )

    try:
        cfg = config or load_config()
        result = await run_digest(
            cfg,
            parameter_store=parameter_store,
            client_factory=client_factory,
            mailer_factory=mailer_factory,
            correlation_id=correlation_id,
        )
    except Exception as exc:
        kind, severity = classify_error(exc)
        stats = exc.digest_stats if isinstance(exc, DigestError) else None
        logger.error(
            "lambda_invocation_failed",
            extra={
                "correlation_id": correlation_id,
                "type": kind.value,
                "severity": severity.value,
                "alert": should_alert(severity),
                "error": str(exc),
                "error_class": type(exc).__name__,
                "stats": stats.to_dict() if stats is not None else None,
            },
            exc_info=kind == ErrorKind.UNKNOWN_ERROR,
        )
        return error_response(exc)

    stats = result.stats
    return {
        "statusCode": 200,
        "body": json.dumps(
            {
                "message": SUCCESS_MESSAGE,
                "stats": {
                    "executionTime": stats.duration_ms,
                    "bookmarkCount": stats.bookmark_count,
                    "emailSent": stats.email_sent,
                    "messageId": stats.message_id,
                },
            },
            ensure_ascii=False,
        ),
    }


def lambda_handler(event: Any, context: Any) -> dict[str, Any]:
    """Synchronous entry point registered with the Lambda runtime."""
    try:
        cfg = load_config()
    except ConfigurationError:
        # handle() reloads the config and turns the failure into a 500 response.
        cfg = None
        setup_json_logging()
    else:
        setup_json_logging(cfg.runtime.log_level, serialize=cfg.runtime.log_json)
    return asyncio.run(handle(event, context, config=cfg))
