"""S3 client construction.

This module resolves a ``StorageOptions`` structure into one boto3 S3 client.
The client works with AWS S3, MinIO, and other S3-compatible services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config

from objectstore.common.config import DEFAULT_REGION
from objectstore.infra.storage.credentials import (
    SessionCredentialProvider,
    StaticCredentials,
    StsSessionCredentialProvider,
)

if TYPE_CHECKING:
    from objectstore.common.config import Settings

logger = logging.getLogger("objectstore.storage")

MB = 1024 * 1024


@dataclass(frozen=True)
class StorageOptions:
    """Recognized ways of obtaining an S3 client.

    At most one of ``client``, ``session_credential_provider`` and
    ``static_credentials`` may be set. With none of them the provider's
    default credential chain applies (environment variables, shared
    credentials file, instance role).
    """

    static_credentials: StaticCredentials | None = None
    session_credential_provider: SessionCredentialProvider | None = None
    client: Any | None = None
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None
    addressing_style: str = "auto"
    max_attempts: int | None = None
    transfer_config: TransferConfig | None = None

    def __post_init__(self) -> None:
        sources = [
            name
            for name in ("client", "session_credential_provider", "static_credentials")
            if getattr(self, name) is not None
        ]
        if len(sources) > 1:
            raise ValueError(
                f"Only one client source may be configured, got: {', '.join(sources)}"
            )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "StorageOptions":
        static_credentials = None
        if settings.has_static_credentials:
            static_credentials = StaticCredentials(
                access_key_id=settings.S3_ACCESS_KEY_ID or "",
                secret_access_key=settings.S3_SECRET_ACCESS_KEY or "",
            )
        session_provider = None
        if settings.S3_USE_SESSION_CREDENTIALS:
            session_provider = StsSessionCredentialProvider(
                duration_seconds=settings.S3_SESSION_DURATION_SECONDS,
                region=settings.S3_REGION,
            )
        return cls(
            static_credentials=static_credentials,
            session_credential_provider=session_provider,
            region=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            addressing_style=settings.S3_ADDRESSING_STYLE,
            max_attempts=settings.S3_MAX_ATTEMPTS,
            transfer_config=build_transfer_config(
                multipart_threshold_mb=settings.S3_MULTIPART_THRESHOLD_MB,
                max_concurrency=settings.S3_MAX_CONCURRENCY,
            ),
        )


def build_transfer_config(
    *, multipart_threshold_mb: int = 8, max_concurrency: int = 10
) -> TransferConfig:
    """Managed transfer settings: files above the threshold go multipart."""
    return TransferConfig(
        multipart_threshold=multipart_threshold_mb * MB,
        multipart_chunksize=multipart_threshold_mb * MB,
        max_concurrency=max_concurrency,
    )


def _client_config(options: StorageOptions) -> Config:
    addressing_style = (options.addressing_style or "auto").strip().lower()
    kwargs: dict[str, Any] = {"s3": {"addressing_style": addressing_style}}
    if options.max_attempts is not None:
        kwargs["retries"] = {"max_attempts": int(options.max_attempts), "mode": "standard"}
    return Config(**kwargs)


def build_s3_client(options: StorageOptions) -> Any:
    """Resolve ``options`` into a single boto3 S3 client."""
    if options.client is not None:
        return options.client

    params: dict[str, Any] = {
        "region_name": options.region,
        "endpoint_url": options.endpoint_url,
        "config": _client_config(options),
    }

    if options.session_credential_provider is not None:
        credentials = options.session_credential_provider.get_session_credentials()
        params.update(
            aws_access_key_id=credentials.access_key_id,
            aws_secret_access_key=credentials.secret_access_key,
            aws_session_token=credentials.session_token,
        )
        source = "session"
    elif options.static_credentials is not None:
        params.update(
            aws_access_key_id=options.static_credentials.access_key_id,
            aws_secret_access_key=options.static_credentials.secret_access_key,
        )
        source = "static"
    else:
        source = "default_chain"

    logger.debug(
        "s3_client_built credentials=%s region=%s endpoint=%s",
        source,
        options.region,
        options.endpoint_url or "<aws>",
        extra={
            "extra": {
                "credentials": source,
                "region": options.region,
                "endpoint_url": options.endpoint_url,
            }
        },
    )
    return boto3.client("s3", **params)
