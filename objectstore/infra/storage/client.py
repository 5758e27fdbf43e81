"""Storage data types and error taxonomy.

This module defines the value objects returned by the object storage facade
and the exceptions it raises, together with the translation of botocore
failures into those exceptions.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Sequence

from boto3.exceptions import Boto3Error, RetriesExceededError, S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchBucket", "NotFound", "404"})
ALREADY_EXISTS_CODES = frozenset({"BucketAlreadyExists", "BucketAlreadyOwnedByYou"})


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ServiceError(StorageError):
    """Provider-side failure carrying the provider's status and message."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.operation = operation

    def __str__(self) -> str:
        parts = [self.message]
        if self.error_code:
            parts.append(f"code={self.error_code}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.operation:
            parts.append(f"operation={self.operation}")
        return " ".join(parts)


class NotFoundError(ServiceError):
    """Bucket or object does not exist where existence was required."""


class AlreadyExistsError(ServiceError):
    """Bucket name is already taken."""


class LocalIOError(StorageError):
    """Reading or writing a local file failed."""


@dataclass(frozen=True, slots=True)
class Bucket:
    """A named top-level container."""

    name: str
    creation_date: datetime | None = None
    region: str | None = None


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Object content together with the metadata of a GET request."""

    bucket: str
    key: str
    content: bytes
    content_length: int
    etag: str | None = None
    content_type: str | None = None
    version_id: str | None = None
    last_modified: datetime | None = None


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    key: str
    size: int
    etag: str | None = None
    last_modified: datetime | None = None
    storage_class: str | None = None


@dataclass(frozen=True, slots=True)
class ObjectListing:
    """A single page of object summaries.

    ``next_continuation_token`` is set when ``is_truncated`` is true and can be
    passed back to fetch the following page.
    """

    bucket: str
    prefix: str | None
    summaries: Sequence[ObjectSummary] = field(default_factory=tuple)
    is_truncated: bool = False
    next_continuation_token: str | None = None

    @property
    def keys(self) -> list[str]:
        return [summary.key for summary in self.summaries]


@dataclass(frozen=True, slots=True)
class VersionSummary:
    key: str
    version_id: str | None
    is_delete_marker: bool = False


def _response_status(response: dict[str, Any]) -> int | None:
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return int(status) if status is not None else None


def translate_client_error(exc: ClientError, operation: str | None = None) -> ServiceError:
    """Map a botocore ``ClientError`` onto the storage error taxonomy."""
    error = exc.response.get("Error", {}) or {}
    code = error.get("Code")
    code = str(code) if code is not None else None
    message = error.get("Message") or str(exc)
    status = _response_status(exc.response)
    operation = operation or getattr(exc, "operation_name", None)

    if code in NOT_FOUND_CODES or status == 404:
        error_cls: type[ServiceError] = NotFoundError
    elif code in ALREADY_EXISTS_CODES:
        error_cls = AlreadyExistsError
    else:
        error_cls = ServiceError
    return error_cls(message, status_code=status, error_code=code, operation=operation)


@contextmanager
def provider_errors(operation: str) -> Iterator[None]:
    """Re-raise SDK failures raised inside the block as ``ServiceError``."""
    try:
        yield
    except ClientError as exc:
        raise translate_client_error(exc, operation) from exc
    except S3UploadFailedError as exc:
        cause = exc.__cause__ or exc.__context__
        if isinstance(cause, ClientError):
            raise translate_client_error(cause, operation) from exc
        raise ServiceError(str(exc), operation=operation) from exc
    except RetriesExceededError as exc:
        last = getattr(exc, "last_exception", None)
        message = f"{exc}: {last}" if last is not None else str(exc)
        raise ServiceError(message, operation=operation) from exc
    except Boto3Error as exc:
        raise ServiceError(str(exc), operation=operation) from exc
    except BotoCoreError as exc:
        raise ServiceError(str(exc), operation=operation) from exc
