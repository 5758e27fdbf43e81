"""Convenience layer over S3 bucket and object operations."""

from objectstore.infra.storage import (
    AlreadyExistsError,
    Bucket,
    LocalIOError,
    NotFoundError,
    ObjectListing,
    ObjectSummary,
    ServiceError,
    SessionCredentials,
    StaticCredentials,
    StorageError,
    StorageOptions,
    StoredObject,
    StsSessionCredentialProvider,
)
from objectstore.services import ObjectStorageService

__version__ = "0.1.0"

__all__ = [
    "AlreadyExistsError",
    "Bucket",
    "LocalIOError",
    "NotFoundError",
    "ObjectListing",
    "ObjectStorageService",
    "ObjectSummary",
    "ServiceError",
    "SessionCredentials",
    "StaticCredentials",
    "StorageError",
    "StorageOptions",
    "StoredObject",
    "StsSessionCredentialProvider",
]
