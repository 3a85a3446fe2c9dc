"""AWS Systems Manager Parameter Store access for digest secrets."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from bookmark_mailer.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Leaf parameter names under the configured path.
PARAM_API_TOKEN = "raindrop-api-token"
PARAM_EMAIL_FROM = "email-from"
PARAM_EMAIL_TO = "email-to"


@dataclass(frozen=True)
class DigestParameters:
    api_token: str | None = None
    email_from: str | None = None
    email_to: str | None = None


class ParameterStore:
    def __init__(self, *, region: str = "us-east-1", client: Any | None = None) -> None:
        self.region = region
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("ssm", region_name=self.region)
        return self._client

    def get_parameters_by_path(self, path: str, *, decrypt: bool = True) -> dict[str, str]:
        """Fetch every parameter under ``path``, keyed by the last path segment.

        Raises:
            ConfigurationError: When the store cannot be read

        """
        parameters: dict[str, str] = {}
        try:
            paginator = self._get_client().get_paginator("get_parameters_by_path")
            for page in paginator.paginate(Path=path, Recursive=True, WithDecryption=decrypt):
                for param in page.get("Parameters", []):
                    key = str(param["Name"]).rsplit("/", 1)[-1]
                    parameters[key] = param.get("Value", "")
        except (BotoCoreError, ClientError) as exc:
            msg = f"Failed to read Parameter Store path {path}: {exc}"
            raise ConfigurationError(msg, details={"path": path}) from exc

        logger.info(
            "parameter_store_loaded",
            extra={"path": path, "keys": sorted(parameters)},
        )
        return parameters

    def get_digest_parameters(self, path: str) -> DigestParameters:
        parameters = self.get_parameters_by_path(path)
        return DigestParameters(
            api_token=parameters.get(PARAM_API_TOKEN),
            email_from=parameters.get(PARAM_EMAIL_FROM),
            email_to=parameters.get(PARAM_EMAIL_TO),
        )

    async def aget_digest_parameters(self, path: str) -> DigestParameters:
        return await asyncio.to_thread(self.get_digest_parameters, path)
