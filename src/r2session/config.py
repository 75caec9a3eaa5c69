"""Credential and client configuration models.

Credentials live in memory only; nothing here writes them to disk.
"""

from __future__ import annotations

import os

from botocore.config import Config
from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt, SecretStr


DEFAULT_ENDPOINT_DOMAIN = "r2.cloudflarestorage.com"


class Credentials(BaseModel):
    """Account identifier plus static access key pair."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    account_id: str = Field(min_length=1)
    access_key: str = Field(min_length=1)
    secret_key: SecretStr

    @classmethod
    def from_env(cls) -> Credentials:
        """Build from ``R2_ACCOUNT_ID``, ``R2_ACCESS_KEY_ID`` and ``R2_SECRET_ACCESS_KEY``.

        Raises:
            pydantic.ValidationError: If a variable is missing or empty.
        """
        return cls(
            account_id=os.environ.get("R2_ACCOUNT_ID", ""),
            access_key=os.environ.get("R2_ACCESS_KEY_ID", ""),
            secret_key=SecretStr(os.environ.get("R2_SECRET_ACCESS_KEY", "")),
        )


class ClientSettings(BaseModel):
    """Endpoint rule and transport settings for the S3 client.

    Retries are disabled at the transport level: a failed request fails the
    operation that issued it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    endpoint_domain: str = Field(default=DEFAULT_ENDPOINT_DOMAIN, min_length=1)
    region_name: str = "auto"
    connect_timeout: PositiveFloat = 5.0
    read_timeout: PositiveFloat = 60.0
    max_pool_connections: PositiveInt = 50

    @classmethod
    def from_env(cls) -> ClientSettings:
        """Read overrides from ``R2_ENDPOINT_DOMAIN``, ``R2_REGION``,
        ``R2_CONNECT_TIMEOUT`` and ``R2_READ_TIMEOUT``; unset variables keep defaults.
        """
        env = {
            "endpoint_domain": os.environ.get("R2_ENDPOINT_DOMAIN"),
            "region_name": os.environ.get("R2_REGION"),
            "connect_timeout": os.environ.get("R2_CONNECT_TIMEOUT"),
            "read_timeout": os.environ.get("R2_READ_TIMEOUT"),
        }
        return cls.model_validate({k: v for k, v in env.items() if v})

    def endpoint_for(self, account_id: str) -> str:
        return f"https://{account_id}.{self.endpoint_domain}"

    def boto_config(self) -> Config:
        return Config(
            region_name=self.region_name,
            signature_version="s3v4",
            max_pool_connections=self.max_pool_connections,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            retries={"total_max_attempts": 1, "mode": "standard"},
        )


__all__ = ["DEFAULT_ENDPOINT_DOMAIN", "Credentials", "ClientSettings"]
