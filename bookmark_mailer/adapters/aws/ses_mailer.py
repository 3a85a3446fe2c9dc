"""Plain-text mail delivery through AWS SES."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from bookmark_mailer.core.time_utils import utc_now
from bookmark_mailer.domain.exceptions import ConfigurationError, MailDeliveryError

if TYPE_CHECKING:
    from bookmark_mailer.domain.models.digest import DigestDocument

logger = logging.getLogger(__name__)

CHARSET = "UTF-8"

_SES_ERROR_MESSAGES: dict[str, str] = {
    "MessageRejected": "Message rejected; check the addresses and content",
    "MailFromDomainNotVerified": "Sender domain is not verified in SES",
    "ConfigurationSetDoesNotExist": "The configured SES configuration set does not exist",
    "SendingPausedException": "Sending is paused for this configuration set",
    "AccountSendingPausedException": "Sending is disabled for this AWS account",
    "InvalidParameterValue": "Invalid parameter; check the addresses and content",
    "AccessDenied": "Not authorized to use SES; check the IAM role",
    "UnauthorizedOperation": "Not authorized to use SES; check the IAM role",
    "Throttling": "SES sending rate exceeded",
}


@dataclass(frozen=True)
class OutboundEmail:
    subject: str
    body: str
    from_addr: str | None = None
    to_addr: str | None = None


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: str | None
    from_addr: str
    to_addr: str
    subject: str


def _require_text(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        msg = f"{label} must be a non-empty string"
        raise MailDeliveryError(msg, details={"field": label})
    return value


class SesMailer:
    """Send plain-text mail with SES ``SendEmail``."""

    def __init__(
        self,
        *,
        from_addr: str,
        to_addr: str,
        region: str = "us-east-1",
        client: Any | None = None,
    ) -> None:
        if not from_addr:
            msg = "Sender address is not configured (EMAIL_FROM)"
            raise ConfigurationError(msg)
        if not to_addr:
            msg = "Recipient address is not configured (EMAIL_TO)"
            raise ConfigurationError(msg)
        self.from_addr = from_addr
        self.to_addr = to_addr
        self.region = region
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("ses", region_name=self.region)
        return self._client

    def send_email(self, email: OutboundEmail) -> SendResult:
        """Send one message.

        Raises:
            MailDeliveryError: On invalid input or an SES failure

        """
        subject = _require_text(email.subject, "subject")
        body = _require_text(email.body, "body")
        from_addr = _require_text(email.from_addr or self.from_addr, "from_addr")
        to_addr = _require_text(email.to_addr or self.to_addr, "to_addr")

        try:
            response = self._get_client().send_email(
                Source=from_addr,
                Destination={"ToAddresses": [to_addr]},
                Message={
                    "Subject": {"Data": subject, "Charset": CHARSET},
                    "Body": {"Text": {"Data": body, "Charset": CHARSET}},
                },
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "UnknownError")
            detail = exc.response.get("Error", {}).get("Message") or str(exc)
            message = _SES_ERROR_MESSAGES.get(code, f"Failed to send email: {detail}")
            logger.error("ses_send_failed", extra={"code": code, "error": detail})
            raise MailDeliveryError(message, details={"code": code}) from exc
        except BotoCoreError as exc:
            logger.error("ses_send_failed", extra={"code": type(exc).__name__, "error": str(exc)})
            msg = f"Failed to send email: {exc}"
            raise MailDeliveryError(msg, details={"code": type(exc).__name__}) from exc

        message_id = response.get("MessageId")
        logger.info("ses_email_sent", extra={"message_id": message_id, "to": to_addr})
        return SendResult(
            success=True,
            message_id=message_id,
            from_addr=from_addr,
            to_addr=to_addr,
            subject=subject,
        )

    def send_digest(self, digest: DigestDocument) -> SendResult:
        return self.send_email(
            OutboundEmail(
                subject=digest.subject,
                body=digest.body,
                from_addr=digest.from_addr,
                to_addr=digest.to_addr,
            )
        )

    def send_test_email(self) -> SendResult:
        """Send a short message confirming that SES delivery works."""
        sent_at = utc_now().strftime("%Y-%m-%d %H:%M:%S UTC")
        body = (
            "This is a test message from the bookmark digest mailer.\n\n"
            f"Sent at: {sent_at}\n"
            f"From: {self.from_addr}\n"
            f"To: {self.to_addr}\n\n"
            "If you received this message, SES delivery is configured correctly."
        )
        return self.send_email(
            OutboundEmail(subject=f"Bookmark digest test message - {sent_at}", body=body)
        )

    async def asend_email(self, email: OutboundEmail) -> SendResult:
        return await asyncio.to_thread(self.send_email, email)

    async def asend_digest(self, digest: DigestDocument) -> SendResult:
        return await asyncio.to_thread(self.send_digest, digest)

    async def asend_test_email(self) -> SendResult:
        return await asyncio.to_thread(self.send_test_email)
