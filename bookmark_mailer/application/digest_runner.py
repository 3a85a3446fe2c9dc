"""Wire configuration, credentials and adapters into one digest run."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from bookmark_mailer.adapters.aws.parameter_store import ParameterStore
from bookmark_mailer.adapters.aws.ses_mailer import SesMailer
from bookmark_mailer.adapters.raindrop.client import RaindropClient
from bookmark_mailer.application.credentials import (
    DigestCredentials,
    ParameterSource,
    resolve_credentials,
)
from bookmark_mailer.application.use_cases.send_weekly_digest import SendWeeklyDigest

if TYPE_CHECKING:
    from bookmark_mailer.application.use_cases.send_weekly_digest import DigestRunResult
    from bookmark_mailer.config import AppConfig

logger = logging.getLogger(__name__)

ClientFactory = Callable[[DigestCredentials, "AppConfig"], Any]
MailerFactory = Callable[[DigestCredentials, "AppConfig"], Any]


def default_client_factory(credentials: DigestCredentials, cfg: AppConfig) -> RaindropClient:
    return RaindropClient(
        credentials.api_token,
        cfg.raindrop.api_url,
        float(cfg.raindrop.timeout_sec),
    )


def default_mailer_factory(credentials: DigestCredentials, cfg: AppConfig) -> SesMailer:
    return SesMailer(
        from_addr=credentials.email_from,
        to_addr=credentials.email_to,
        region=cfg.aws.region,
    )


async def run_digest(
    cfg: AppConfig,
    *,
    parameter_store: ParameterSource | None = None,
    client_factory: ClientFactory | None = None,
    mailer_factory: MailerFactory | None = None,
    dry_run: bool = False,
    lookback_days: int | None = None,
    correlation_id: str | None = None,
) -> DigestRunResult:
    """Resolve credentials, open the Raindrop.io client and run the use case.

    Args:
        cfg: Loaded application configuration
        parameter_store: Secret source; defaults to SSM in ``cfg.aws.region``
        client_factory: Builds the async bookmark client from credentials
        mailer_factory: Builds the mailer from credentials
        dry_run: Format the digest without sending it
        lookback_days: Overrides ``cfg.digest.lookback_days``
        correlation_id: Identifier attached to every log line of the run

    """
    store = parameter_store if parameter_store is not None else ParameterStore(region=cfg.aws.region)
    credentials = await resolve_credentials(cfg, store)

    make_client = client_factory or default_client_factory
    make_mailer = mailer_factory or default_mailer_factory
    mailer = None if dry_run else make_mailer(credentials, cfg)

    async with make_client(credentials, cfg) as client:
        use_case = SendWeeklyDigest(
            fetcher=client,
            mailer=mailer,
            digest_config=cfg.digest,
            from_addr=credentials.email_from,
            to_addr=credentials.email_to,
        )
        return await use_case.execute(
            dry_run=dry_run,
            lookback_days=lookback_days,
            correlation_id=correlation_id,
        )
