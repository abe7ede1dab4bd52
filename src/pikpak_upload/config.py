from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from pikpak_upload.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_TIMEOUT,
)

ENV_FILE = Path(".env")
ENV_PREFIX = "PIKPAK_"


def _env(name: str) -> str | None:
    return os.environ.get(ENV_PREFIX + name)


@dataclass
class Settings:
    ACCESS_TOKEN: str = ""
    USER_ID: str = ""
    DEVICE_ID: str = ""
    CAPTCHA_TOKEN: str = ""
    CAPTCHA_SALTS_FILE: str | None = None
    CONCURRENCY: int = DEFAULT_CONCURRENCY
    MIN_CHUNK_SIZE: int = DEFAULT_CHUNK_SIZE
    MAX_ATTEMPTS: int = DEFAULT_MAX_ATTEMPTS
    RETRY_BACKOFF: float = DEFAULT_RETRY_BACKOFF
    TIMEOUT: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if self.CONCURRENCY < 1:
            raise ValueError("CONCURRENCY must be at least 1.")
        if self.MIN_CHUNK_SIZE < 1:
            raise ValueError("MIN_CHUNK_SIZE must be positive.")
        if self.MAX_ATTEMPTS < 1:
            raise ValueError("MAX_ATTEMPTS must be at least 1.")

    @classmethod
    def from_environment(cls) -> "Settings":
        load_dotenv(ENV_FILE, override=False)
        return cls(
            ACCESS_TOKEN=_env("ACCESS_TOKEN") or "",
            USER_ID=_env("USER_ID") or "",
            DEVICE_ID=_env("DEVICE_ID") or "",
            CAPTCHA_TOKEN=_env("CAPTCHA_TOKEN") or "",
            CAPTCHA_SALTS_FILE=_env("CAPTCHA_SALTS_FILE") or None,
            CONCURRENCY=int(_env("CONCURRENCY") or cls.CONCURRENCY),
            MIN_CHUNK_SIZE=int(_env("MIN_CHUNK_SIZE") or cls.MIN_CHUNK_SIZE),
            MAX_ATTEMPTS=int(_env("MAX_ATTEMPTS") or cls.MAX_ATTEMPTS),
            RETRY_BACKOFF=float(_env("RETRY_BACKOFF") or cls.RETRY_BACKOFF),
            TIMEOUT=float(_env("TIMEOUT") or cls.TIMEOUT),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
