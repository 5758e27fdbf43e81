from __future__ import annotations

import os

import pytest

from objectstore.common.config import get_settings
from objectstore.services.storage_service import ObjectStorageService
from tests.services.fake_s3 import FakeS3Client

# Keep boto3 from picking up real credentials or regions from the host.
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")

SETTINGS_VARIABLES = (
    "S3_REGION",
    "S3_ENDPOINT_URL",
    "S3_ADDRESSING_STYLE",
    "S3_ACCESS_KEY_ID",
    "S3_SECRET_ACCESS_KEY",
    "S3_USE_SESSION_CREDENTIALS",
    "S3_SESSION_DURATION_SECONDS",
    "S3_MULTIPART_THRESHOLD_MB",
    "S3_MAX_CONCURRENCY",
    "S3_MAX_ATTEMPTS",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    for name in SETTINGS_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("objectstore.common.config.ENV_FILE", tmp_path / ".env")
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def fake_s3():
    return FakeS3Client()


@pytest.fixture()
def service(fake_s3):
    return ObjectStorageService(client=fake_s3)


@pytest.fixture()
def make_file(tmp_path):
    def _make(name: str, content: str | bytes) -> os.PathLike[str]:
        path = tmp_path / name
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        return path

    return _make
