"""Long-lived and session-scoped credentials.

Session credentials are time-bounded. Nothing in this package refreshes them:
a caller that outlives ``expiration`` must fetch new credentials and build a
new client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from objectstore.infra.storage.client import ServiceError, provider_errors

logger = logging.getLogger("objectstore.credentials")


@dataclass(frozen=True, slots=True)
class StaticCredentials:
    """An access/secret key pair."""

    access_key_id: str
    secret_access_key: str

    def __repr__(self) -> str:
        return f"StaticCredentials(access_key_id={self.access_key_id!r})"


@dataclass(frozen=True, slots=True)
class SessionCredentials:
    """An access/secret/token triple issued by a token service."""

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime | None = None

    def is_expired(self, leeway: timedelta = timedelta(0)) -> bool:
        if self.expiration is None:
            return False
        return datetime.now(timezone.utc) + leeway >= self.expiration

    def __repr__(self) -> str:
        return (
            f"SessionCredentials(access_key_id={self.access_key_id!r}, "
            f"expiration={self.expiration!r})"
        )


class SessionCredentialProvider(Protocol):
    """Source of session credentials used to build a client."""

    def get_session_credentials(self) -> SessionCredentials:
        """Return credentials valid at the time of the call.

        Raises:
            ServiceError: If the token service rejects the request.
        """
        ...


class StaticSessionCredentialProvider:
    """Hands out session credentials obtained elsewhere."""

    def __init__(self, credentials: SessionCredentials) -> None:
        self._credentials = credentials

    def get_session_credentials(self) -> SessionCredentials:
        return self._credentials


class StsSessionCredentialProvider:
    """Obtains session credentials from STS ``GetSessionToken``.

    The STS client is built from the default credential chain unless one is
    injected. When ``duration_seconds`` is omitted STS applies its own default
    (12 hours).
    """

    def __init__(
        self,
        *,
        sts_client: Any | None = None,
        duration_seconds: int | None = None,
        region: str | None = None,
    ) -> None:
        if duration_seconds is not None and duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")
        self._sts = sts_client or self._build_client(region)
        self._duration_seconds = duration_seconds

    @staticmethod
    def _build_client(region: str | None) -> Any:
        import boto3

        return boto3.client("sts", region_name=region)

    def get_session_credentials(self) -> SessionCredentials:
        params: dict[str, Any] = {}
        if self._duration_seconds is not None:
            params["DurationSeconds"] = int(self._duration_seconds)

        with provider_errors("GetSessionToken"):
            response = self._sts.get_session_token(**params)

        raw = response.get("Credentials") or {}
        if not all(
            raw.get(name) for name in ("AccessKeyId", "SecretAccessKey", "SessionToken")
        ):
            raise ServiceError(
                "STS response missing credentials", operation="GetSessionToken"
            )
        credentials = SessionCredentials(
            access_key_id=raw["AccessKeyId"],
            secret_access_key=raw["SecretAccessKey"],
            session_token=raw["SessionToken"],
            expiration=raw.get("Expiration"),
        )
        logger.debug(
            "session_credentials_issued access_key_id=%s expiration=%s",
            credentials.access_key_id,
            credentials.expiration,
            extra={
                "extra": {
                    "access_key_id": credentials.access_key_id,
                    "expiration": str(credentials.expiration),
                }
            },
        )
        return credentials
