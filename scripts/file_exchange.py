#!/usr/bin/env python3
"""Exchange a request and a response file between two parties through S3.

The central party writes the request file to the "out" bucket, the local
party reads it and writes the response file to the "in" bucket, which the
central party then reads back. Each party uses its own AWS profile.

Usage:
  .venv/bin/python scripts/file_exchange.py request.txt response.txt
  .venv/bin/python scripts/file_exchange.py request.txt response.txt \\
      --central-profile central --local-profile local \\
      --out-bucket exchange-out --in-bucket exchange-in

Exits with status 1 when the provider rejects any step.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import boto3

from objectstore.common.config import get_settings
from objectstore.common.logging import setup_logging
from objectstore.infra.storage.client import StorageError, provider_errors
from objectstore.services.storage_service import ObjectStorageService

logger = logging.getLogger("objectstore.scripts")


def _service_for_profile(profile: str | None, region: str) -> ObjectStorageService:
    with provider_errors("CreateClient"):
        session = boto3.Session(profile_name=profile, region_name=region)
        client = session.client("s3")
    return ObjectStorageService(client=client)


def _print_listing(service: ObjectStorageService, bucket: str) -> None:
    print(f"Listing files on {bucket}")
    for summary in service.list_objects(bucket).summaries:
        print(f"* {summary.key}")


def run_exchange(
    *,
    central: ObjectStorageService,
    local: ObjectStorageService,
    request_file: Path,
    response_file: Path,
    out_bucket: str,
    in_bucket: str,
) -> None:
    print(f"Delete request file on {out_bucket}")
    central.delete_object(out_bucket, request_file.name)
    print(f"Delete response file on {in_bucket}")
    local.delete_object(in_bucket, response_file.name)

    _print_listing(central, out_bucket)
    _print_listing(local, in_bucket)

    print(f"Writing {request_file.name} to {out_bucket} as central")
    central.put_object(out_bucket, request_file)
    _print_listing(central, out_bucket)

    print(f"Reading from {out_bucket} as local")
    request = local.get_object(out_bucket, request_file.name)
    print(f"Reading done: {request.key} ({request.content_length} bytes)")

    print(f"Writing {response_file.name} to {in_bucket} as local")
    local.put_object(in_bucket, response_file)
    _print_listing(local, in_bucket)

    print(f"Reading from {in_bucket} as central")
    response = central.get_object(in_bucket, response_file.name)
    print(f"Reading done: {response.key} ({response.content_length} bytes)")


def main() -> None:
    parser = argparse.ArgumentParser(description="Exchange files through two buckets")
    parser.add_argument("request_file", type=Path, help="Request file to publish")
    parser.add_argument("response_file", type=Path, help="Response file to publish")
    parser.add_argument("--central-profile", default=None, help="AWS profile of the central party")
    parser.add_argument("--local-profile", default=None, help="AWS profile of the local party")
    parser.add_argument("--out-bucket", default="exchange-out", help="Bucket for requests")
    parser.add_argument("--in-bucket", default="exchange-in", help="Bucket for responses")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    try:
        run_exchange(
            central=_service_for_profile(args.central_profile, settings.S3_REGION),
            local=_service_for_profile(args.local_profile, settings.S3_REGION),
            request_file=args.request_file,
            response_file=args.response_file,
            out_bucket=args.out_bucket,
            in_bucket=args.in_bucket,
        )
    except StorageError as exc:
        logger.error("file_exchange_failed error=%s", exc)
        print(str(exc), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
