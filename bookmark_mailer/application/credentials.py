"""Resolve the secrets a digest run needs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from bookmark_mailer.domain.exceptions import ConfigurationError

if TYPE_CHECKING:
    from bookmark_mailer.adapters.aws.parameter_store import DigestParameters
    from bookmark_mailer.config import AppConfig

logger = logging.getLogger(__name__)


class ParameterSource(Protocol):
    async def aget_digest_parameters(self, path: str) -> DigestParameters: ...


@dataclass(frozen=True)
class DigestCredentials:
    api_token: str
    email_from: str
    email_to: str


async def resolve_credentials(
    cfg: AppConfig,
    store: ParameterSource | None,
) -> DigestCredentials:
    """Combine environment settings with Parameter Store values.

    Environment values win; the store is read once, and only when something
    is missing.

    Raises:
        ConfigurationError: When a value is missing from both sources

    """
    api_token = cfg.raindrop.api_token
    email_from = cfg.email.from_addr
    email_to = cfg.email.to_addr

    if not (api_token and email_from and email_to) and store is not None:
        params = await store.aget_digest_parameters(cfg.aws.parameter_store_path)
        api_token = api_token or (params.api_token or "").strip()
        email_from = email_from or (params.email_from or "").strip()
        email_to = email_to or (params.email_to or "").strip()

    missing = [
        name
        for name, value in (
            ("RAINDROP_API_TOKEN", api_token),
            ("EMAIL_FROM", email_from),
            ("EMAIL_TO", email_to),
        )
        if not value
    ]
    if missing:
        msg = f"Required configuration is missing: {', '.join(missing)}"
        raise ConfigurationError(msg, details={"missing": missing})

    logger.debug("credentials_resolved", extra={"email_to": email_to})
    return DigestCredentials(api_token=api_token, email_from=email_from, email_to=email_to)
