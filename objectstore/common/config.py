from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_REGION = "eu-west-1"
ADDRESSING_STYLES: tuple[str, ...] = ("auto", "path", "virtual")
LOG_FORMATS: tuple[str, ...] = ("json", "plain")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value)


def _as_optional_str(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class Settings:
    S3_REGION: str = DEFAULT_REGION
    S3_ENDPOINT_URL: str | None = None
    S3_ADDRESSING_STYLE: str = "auto"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_USE_SESSION_CREDENTIALS: bool = False
    S3_SESSION_DURATION_SECONDS: int | None = None
    S3_MULTIPART_THRESHOLD_MB: int = 8
    S3_MAX_CONCURRENCY: int = 10
    S3_MAX_ATTEMPTS: int | None = None
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    def __post_init__(self) -> None:
        self.S3_ADDRESSING_STYLE = (self.S3_ADDRESSING_STYLE or "auto").strip().lower()
        if self.S3_ADDRESSING_STYLE not in ADDRESSING_STYLES:
            raise ValueError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}."
            )
        if bool(self.S3_ACCESS_KEY_ID) != bool(self.S3_SECRET_ACCESS_KEY):
            raise ValueError(
                "S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY must be set together."
            )
        if self.S3_USE_SESSION_CREDENTIALS and self.S3_ACCESS_KEY_ID:
            raise ValueError(
                "S3_USE_SESSION_CREDENTIALS cannot be combined with static S3 keys."
            )
        if self.S3_MULTIPART_THRESHOLD_MB <= 0 or self.S3_MAX_CONCURRENCY <= 0:
            raise ValueError(
                "S3_MULTIPART_THRESHOLD_MB and S3_MAX_CONCURRENCY must be positive."
            )
        self.LOG_FORMAT = self.LOG_FORMAT.strip().lower()
        if self.LOG_FORMAT not in LOG_FORMATS:
            raise ValueError(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}.")

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.S3_ACCESS_KEY_ID and self.S3_SECRET_ACCESS_KEY)

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ENDPOINT_URL=_as_optional_str(os.environ.get("S3_ENDPOINT_URL")),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_ACCESS_KEY_ID=_as_optional_str(os.environ.get("S3_ACCESS_KEY_ID")),
            S3_SECRET_ACCESS_KEY=_as_optional_str(
                os.environ.get("S3_SECRET_ACCESS_KEY")
            ),
            S3_USE_SESSION_CREDENTIALS=_as_bool(
                os.environ.get("S3_USE_SESSION_CREDENTIALS"),
                cls.S3_USE_SESSION_CREDENTIALS,
            ),
            S3_SESSION_DURATION_SECONDS=_as_optional_int(
                os.environ.get("S3_SESSION_DURATION_SECONDS")
            ),
            S3_MULTIPART_THRESHOLD_MB=int(
                os.environ.get("S3_MULTIPART_THRESHOLD_MB", cls.S3_MULTIPART_THRESHOLD_MB)
            ),
            S3_MAX_CONCURRENCY=int(
                os.environ.get("S3_MAX_CONCURRENCY", cls.S3_MAX_CONCURRENCY)
            ),
            S3_MAX_ATTEMPTS=_as_optional_int(os.environ.get("S3_MAX_ATTEMPTS")),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL),
            LOG_FORMAT=os.environ.get("LOG_FORMAT", cls.LOG_FORMAT),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
