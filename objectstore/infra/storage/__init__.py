"""Object storage abstraction layer.

This package holds the data types, error taxonomy, credential helpers and
client construction for S3 and S3-compatible services (MinIO and others).
"""

from .client import (
    AlreadyExistsError,
    Bucket,
    LocalIOError,
    NotFoundError,
    ObjectListing,
    ObjectSummary,
    ServiceError,
    StorageError,
    StoredObject,
    VersionSummary,
)
from .credentials import (
    SessionCredentialProvider,
    SessionCredentials,
    StaticCredentials,
    StaticSessionCredentialProvider,
    StsSessionCredentialProvider,
)
from .s3_client import StorageOptions, build_s3_client, build_transfer_config

__all__ = [
    "AlreadyExistsError",
    "Bucket",
    "LocalIOError",
    "NotFoundError",
    "ObjectListing",
    "ObjectSummary",
    "ServiceError",
    "SessionCredentialProvider",
    "SessionCredentials",
    "StaticCredentials",
    "StaticSessionCredentialProvider",
    "StorageError",
    "StorageOptions",
    "StoredObject",
    "StsSessionCredentialProvider",
    "VersionSummary",
    "build_s3_client",
    "build_transfer_config",
]
