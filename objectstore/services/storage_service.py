"""Object storage facade.

This module provides ``ObjectStorageService``, a narrow surface over bucket and
object operations. Every call is a blocking request to the provider; retries,
request signing and multipart mechanics stay inside boto3.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import shutil
import tempfile
from contextlib import closing
from dataclasses import replace
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Generic, Iterator, TypeVar

from boto3.s3.transfer import TransferConfig

from objectstore.common.config import get_settings
from objectstore.infra.storage.client import (
    AlreadyExistsError,
    Bucket,
    LocalIOError,
    NotFoundError,
    ObjectListing,
    ObjectSummary,
    ServiceError,
    StoredObject,
    VersionSummary,
    provider_errors,
)
from objectstore.infra.storage.s3_client import StorageOptions, build_s3_client

logger = logging.getLogger("objectstore.storage")

T = TypeVar("T")

# Minimum length of the temp file prefix derived from an object key.
TEMP_PREFIX_MIN_LENGTH = 3
# Region in which S3 rejects an explicit LocationConstraint.
US_EAST_1 = "us-east-1"

PathLike = str | os.PathLike[str]


class PageIterator(Generic[T]):
    """Lazily pulls pages from the provider until it reports no more.

    ``fetch`` receives the marker of the page to load (``None`` for the first
    page) and returns the page items with the marker of the next page, or
    ``None`` once the provider signals the listing is complete. Iterating
    again starts over from the first page.
    """

    def __init__(self, fetch: Callable[[Any], tuple[list[T], Any]]) -> None:
        self._fetch = fetch

    def __iter__(self) -> Iterator[list[T]]:
        marker = None
        while True:
            items, marker = self._fetch(marker)
            yield items
            if marker is None:
                return


class ObjectStorageService:
    """Bucket and object operations delegated to an S3 client.

    The client is resolved once from ``options`` (or taken as is when passed
    through ``client``) and reused for every call.
    """

    def __init__(
        self,
        options: StorageOptions | None = None,
        *,
        client: Any | None = None,
    ) -> None:
        if options is not None and client is not None:
            raise ValueError("Pass either options or client, not both")
        if options is None:
            if client is not None:
                options = StorageOptions(client=client)
            else:
                options = StorageOptions.from_settings(get_settings())
        self._options = options
        self._region = options.region
        self._transfer_config = options.transfer_config or TransferConfig()
        self._client = build_s3_client(options)

    @property
    def client(self) -> Any:
        return self._client

    @property
    def region(self) -> str:
        return self._region

    # Buckets

    def list_buckets(self) -> list[Bucket]:
        with provider_errors("ListBuckets"):
            response = self._client.list_buckets()
        return [
            Bucket(name=item["Name"], creation_date=item.get("CreationDate"))
            for item in response.get("Buckets", [])
        ]

    def get_bucket(self, name: str) -> Bucket | None:
        """Return the bucket called ``name`` or ``None`` when it is not listed."""
        for bucket in self.list_buckets():
            if bucket.name == name:
                return bucket
        return None

    def log_all_buckets(self) -> None:
        buckets = self.list_buckets()
        logger.info("Your buckets are:")
        for bucket in buckets:
            logger.info("* %s", bucket.name)

    def bucket_exists(self, name: str) -> bool:
        """Check existence with a HEAD request instead of listing.

        A 403 answer means the bucket exists but belongs to another account.
        """
        try:
            with provider_errors("HeadBucket"):
                self._client.head_bucket(Bucket=name)
        except NotFoundError:
            return False
        except ServiceError as exc:
            if exc.status_code == 403:
                return True
            raise
        return True

    def create_bucket(self, name: str, region: str | None = None) -> Bucket:
        """Create ``name`` in ``region``, or return it if it already exists.

        The returned bucket always carries its region. ``creation_date`` is only
        known for a bucket that already existed.

        Raises:
            AlreadyExistsError: If the name is taken by another account.
            ServiceError: If the provider rejects the request.
        """
        region = region or self._region
        if self.bucket_exists(name):
            logger.info(
                "bucket_already_exists bucket=%s",
                name,
                extra={"extra": {"bucket": name}},
            )
            existing = self.get_bucket(name)
            if existing is None:
                raise AlreadyExistsError(
                    f"Bucket {name} exists but is not owned by this account",
                    error_code="BucketAlreadyExists",
                    operation="CreateBucket",
                )
            return replace(existing, region=self._bucket_region(name))

        params: dict[str, Any] = {"Bucket": name}
        if region != US_EAST_1:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        logger.debug(
            "create_bucket bucket=%s region=%s",
            name,
            region,
            extra={"extra": {"bucket": name, "region": region}},
        )
        try:
            with provider_errors("CreateBucket"):
                self._client.create_bucket(**params)
        except AlreadyExistsError as exc:
            if exc.error_code != "BucketAlreadyOwnedByYou":
                raise
            logger.info(
                "bucket_already_exists bucket=%s",
                name,
                extra={"extra": {"bucket": name}},
            )
        return Bucket(name=name, region=region)

    def _bucket_region(self, name: str) -> str:
        with provider_errors("GetBucketLocation"):
            response = self._client.get_bucket_location(Bucket=name)
        # S3 reports us-east-1 as an empty constraint.
        return response.get("LocationConstraint") or US_EAST_1

    def delete_bucket(self, name: str) -> None:
        """Empty the bucket and delete it.

        Objects are removed first, then every version and delete marker, then
        the bucket itself. Both listings are drained page by page because the
        provider refuses to delete a bucket that still holds anything.
        """
        logger.debug("delete_bucket bucket=%s", name, extra={"extra": {"bucket": name}})

        logger.debug(" - removing objects from bucket %s", name)
        removed_objects = 0
        for page in self._object_pages(name):
            for summary in page:
                with provider_errors("DeleteObject"):
                    self._client.delete_object(Bucket=name, Key=summary.key)
                removed_objects += 1

        logger.debug(" - removing versions from bucket %s", name)
        removed_versions = 0
        for page in self._version_pages(name):
            for version in page:
                params: dict[str, Any] = {"Bucket": name, "Key": version.key}
                if version.version_id:
                    params["VersionId"] = version.version_id
                with provider_errors("DeleteObject"):
                    self._client.delete_object(**params)
                removed_versions += 1

        with provider_errors("DeleteBucket"):
            self._client.delete_bucket(Bucket=name)
        logger.debug(
            "bucket_deleted bucket=%s objects=%s versions=%s",
            name,
            removed_objects,
            removed_versions,
            extra={
                "extra": {
                    "bucket": name,
                    "objects": removed_objects,
                    "versions": removed_versions,
                }
            },
        )

    def _object_pages(self, bucket: str) -> PageIterator[ObjectSummary]:
        def fetch(token: str | None) -> tuple[list[ObjectSummary], str | None]:
            listing = self.list_objects(bucket, continuation_token=token)
            next_token = listing.next_continuation_token if listing.is_truncated else None
            return list(listing.summaries), next_token

        return PageIterator(fetch)

    def _version_pages(self, bucket: str) -> PageIterator[VersionSummary]:
        def fetch(
            marker: tuple[str, str | None] | None,
        ) -> tuple[list[VersionSummary], tuple[str, str | None] | None]:
            params: dict[str, Any] = {"Bucket": bucket}
            if marker is not None:
                key_marker, version_id_marker = marker
                params["KeyMarker"] = key_marker
                if version_id_marker:
                    params["VersionIdMarker"] = version_id_marker
            with provider_errors("ListObjectVersions"):
                response = self._client.list_object_versions(**params)

            items = [
                VersionSummary(key=item["Key"], version_id=item.get("VersionId"))
                for item in response.get("Versions", [])
            ]
            items.extend(
                VersionSummary(
                    key=item["Key"],
                    version_id=item.get("VersionId"),
                    is_delete_marker=True,
                )
                for item in response.get("DeleteMarkers", [])
            )
            next_marker = None
            if response.get("IsTruncated"):
                next_marker = (
                    response.get("NextKeyMarker", ""),
                    response.get("NextVersionIdMarker"),
                )
            return items, next_marker

        return PageIterator(fetch)

    # Objects

    def get_object(self, bucket: str, key: str) -> StoredObject:
        """Download an object into memory.

        Raises:
            NotFoundError: If the bucket or key does not exist.
        """
        logger.debug(
            "get_object bucket=%s key=%s",
            bucket,
            key,
            extra={"extra": {"bucket": bucket, "key": key}},
        )
        with provider_errors("GetObject"):
            response = self._client.get_object(Bucket=bucket, Key=key)
            with closing(response["Body"]) as body:
                content = body.read()

        length = response.get("ContentLength")
        return StoredObject(
            bucket=bucket,
            key=key,
            content=content,
            content_length=int(length) if length is not None else len(content),
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            version_id=response.get("VersionId"),
            last_modified=response.get("LastModified"),
        )

    def get_object_file(
        self,
        bucket: str,
        key: str,
        target_path: PathLike | None = None,
    ) -> Path:
        """Write an object's content to ``target_path`` and return the path.

        An existing file is overwritten. Without ``target_path`` the content
        goes to a new temp file named after the key (see ``create_temp_file``),
        which is removed again if the download fails.
        """
        generated = target_path is None
        target = self.create_temp_file(key) if generated else Path(target_path)
        logger.debug(
            "get_object_file bucket=%s key=%s target=%s",
            bucket,
            key,
            target,
            extra={"extra": {"bucket": bucket, "key": key, "target": str(target)}},
        )
        try:
            with provider_errors("GetObject"):
                response = self._client.get_object(Bucket=bucket, Key=key)
                with closing(response["Body"]) as body:
                    try:
                        with target.open("wb") as handle:
                            shutil.copyfileobj(body, handle)
                    except OSError as exc:
                        raise LocalIOError(f"Failed to write {target}: {exc}") from exc
        except BaseException:
            if generated:
                target.unlink(missing_ok=True)
            raise
        return target

    def create_temp_file(self, key: str) -> Path:
        """Create an empty temp file named after the key.

        The prefix is the key's base name without extension, right-padded with
        ``_`` to three characters; the suffix is the key's extension.
        """
        name = PurePosixPath(key).name
        prefix = PurePosixPath(name).stem.ljust(TEMP_PREFIX_MIN_LENGTH, "_")
        suffix = PurePosixPath(name).suffix
        try:
            fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix)
            os.close(fd)
        except OSError as exc:
            raise LocalIOError(f"Failed to create temp file for {key}: {exc}") from exc
        return Path(path)

    def download_file(self, bucket: str, key: str, target_path: PathLike) -> Path:
        """Managed download that blocks until the transfer completes."""
        target = Path(target_path)
        logger.debug(
            "download_file bucket=%s key=%s target=%s",
            bucket,
            key,
            target.resolve(),
            extra={"extra": {"bucket": bucket, "key": key, "target": str(target)}},
        )
        try:
            with provider_errors("DownloadFile"):
                self._client.download_file(
                    bucket, key, str(target), Config=self._transfer_config
                )
        except OSError as exc:
            raise LocalIOError(f"Failed to write {target}: {exc}") from exc
        return target

    def upload_file(self, bucket: str, key: str, path: PathLike) -> None:
        """Managed upload that blocks until the transfer completes.

        Large files are sent as multipart uploads according to the configured
        ``TransferConfig``.
        """
        source = Path(path)
        logger.debug(
            "upload_file bucket=%s key=%s source=%s",
            bucket,
            key,
            source.resolve(),
            extra={"extra": {"bucket": bucket, "key": key, "source": str(source)}},
        )
        if not source.is_file():
            raise LocalIOError(f"File not found: {source}")
        try:
            with provider_errors("UploadFile"):
                self._client.upload_file(
                    str(source), bucket, key, Config=self._transfer_config
                )
        except OSError as exc:
            raise LocalIOError(f"Failed to read {source}: {exc}") from exc

    def put_object(self, bucket: str, file: PathLike, key: str | None = None) -> str:
        """Upload a local file in one request and return the key used.

        The key defaults to the file's base name; any object already stored
        under it is overwritten.
        """
        source = Path(file)
        key = key or source.name
        params: dict[str, Any] = {"Bucket": bucket, "Key": key}
        content_type, _ = mimetypes.guess_type(source.name)
        if content_type:
            params["ContentType"] = content_type

        logger.debug(
            "put_object bucket=%s key=%s source=%s",
            bucket,
            key,
            source.resolve(),
            extra={"extra": {"bucket": bucket, "key": key, "source": str(source)}},
        )
        try:
            with source.open("rb") as handle:
                with provider_errors("PutObject"):
                    self._client.put_object(Body=handle, **params)
        except OSError as exc:
            raise LocalIOError(f"Failed to read {source}: {exc}") from exc
        return key

    def copy_object(self, key: str, from_bucket: str, to_bucket: str) -> None:
        """Server-side copy of ``key`` between buckets, keeping the key."""
        logger.debug(
            "copy_object key=%s from=%s to=%s",
            key,
            from_bucket,
            to_bucket,
            extra={"extra": {"key": key, "from": from_bucket, "to": to_bucket}},
        )
        with provider_errors("CopyObject"):
            self._client.copy_object(
                Bucket=to_bucket,
                Key=key,
                CopySource={"Bucket": from_bucket, "Key": key},
            )

    def list_objects(
        self,
        bucket: str,
        prefix: str | None = None,
        *,
        continuation_token: str | None = None,
        max_keys: int | None = None,
    ) -> ObjectListing:
        """Return one page of object summaries.

        Follow ``next_continuation_token`` to read further pages.
        """
        params: dict[str, Any] = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        if max_keys is not None:
            params["MaxKeys"] = int(max_keys)

        with provider_errors("ListObjectsV2"):
            response = self._client.list_objects_v2(**params)

        summaries = tuple(
            ObjectSummary(
                key=item["Key"],
                size=int(item.get("Size") or 0),
                etag=item.get("ETag"),
                last_modified=item.get("LastModified"),
                storage_class=item.get("StorageClass"),
            )
            for item in response.get("Contents", [])
        )
        return ObjectListing(
            bucket=bucket,
            prefix=prefix,
            summaries=summaries,
            is_truncated=bool(response.get("IsTruncated")),
            next_continuation_token=response.get("NextContinuationToken"),
        )

    def log_objects(self, bucket: str) -> None:
        for summary in self.list_objects(bucket).summaries:
            logger.info("* %s", summary.key)

    def delete_object(self, bucket: str, key: str) -> None:
        logger.debug(
            "delete_object bucket=%s key=%s",
            bucket,
            key,
            extra={"extra": {"bucket": bucket, "key": key}},
        )
        with provider_errors("DeleteObject"):
            self._client.delete_object(Bucket=bucket, Key=key)

    def delete_objects(self, bucket: str, *keys: str) -> None:
        """Delete several keys with a single batch request.

        Raises:
            ServiceError: If the provider reports a failure for any key.
        """
        if not keys:
            return
        logger.debug(
            "delete_objects bucket=%s count=%s",
            bucket,
            len(keys),
            extra={"extra": {"bucket": bucket, "keys": list(keys)}},
        )
        with provider_errors("DeleteObjects"):
            response = self._client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
            )

        errors = response.get("Errors") or []
        if errors:
            failed = ", ".join(str(error.get("Key")) for error in errors)
            first = errors[0]
            raise ServiceError(
                f"Failed to delete {len(errors)} object(s): {failed}. "
                f"{first.get('Message') or ''}".strip(),
                error_code=first.get("Code"),
                operation="DeleteObjects",
            )
