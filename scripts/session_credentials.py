#!/usr/bin/env python3
"""Count the objects of a bucket with default and session credentials.

The first listing uses the default credential chain. The second obtains a
session token from STS and builds a client from it.

Usage:
  .venv/bin/python scripts/session_credentials.py my-bucket
  .venv/bin/python scripts/session_credentials.py my-bucket --duration 900
"""

from __future__ import annotations

import argparse
import logging
import sys

from objectstore.common.config import get_settings
from objectstore.common.logging import setup_logging
from objectstore.infra.storage.client import StorageError
from objectstore.infra.storage.credentials import StsSessionCredentialProvider
from objectstore.infra.storage.s3_client import StorageOptions
from objectstore.services.storage_service import ObjectStorageService

logger = logging.getLogger("objectstore.scripts")


def count_objects(service: ObjectStorageService, bucket: str) -> int:
    return len(service.list_objects(bucket).summaries)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="List objects with default and session credentials"
    )
    parser.add_argument("bucket", help="Bucket to list")
    parser.add_argument(
        "--duration",
        type=int,
        default=None,
        help="Session token lifetime in seconds (default: STS default)",
    )
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    try:
        print("List objects with default S3 client")
        default_service = ObjectStorageService(StorageOptions(region=settings.S3_REGION))
        print(f"No. of Objects = {count_objects(default_service, args.bucket)}")

        print("List objects with session S3 client")
        provider = StsSessionCredentialProvider(
            duration_seconds=args.duration, region=settings.S3_REGION
        )
        session_service = ObjectStorageService(
            StorageOptions(
                session_credential_provider=provider, region=settings.S3_REGION
            )
        )
        print(f"No. of Objects = {count_objects(session_service, args.bucket)}")
    except StorageError as exc:
        logger.error("session_listing_failed error=%s", exc)
        print(str(exc), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
