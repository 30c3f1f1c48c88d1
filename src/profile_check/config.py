from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

from .models import LocaleParams

load_dotenv()

SEARCH_STRATEGIES = ("business_info", "serp_local", "maps")


def _env_bool(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_int(key: str) -> Optional[int]:
    raw = (os.getenv(key) or "").strip()
    return int(raw) if raw else None


@dataclass(frozen=True)
class Config:
    dataforseo_api_base: str
    dataforseo_login: Optional[str]
    dataforseo_password: Optional[str]
    search_strategy: str
    batch_size: int
    batch_delay_seconds: float
    http_timeout: int
    search_http_attempts: int
    default_location_name: str
    default_language_code: str
    default_location_code: Optional[int]
    max_domains_per_request: int
    export_dir: str
    static_dir: Optional[str]
    service_api_key: Optional[str]
    service_localhost_bypass: bool
    log_level: str

    @property
    def has_default_credentials(self) -> bool:
        return bool(self.dataforseo_login and self.dataforseo_password)

    @property
    def default_locale(self) -> LocaleParams:
        return LocaleParams(
            self.default_location_name,
            self.default_language_code,
            self.default_location_code,
        )


def load_config() -> Config:
    search_strategy = os.getenv("SEARCH_STRATEGY", "business_info").strip().lower()
    if search_strategy not in SEARCH_STRATEGIES:
        raise RuntimeError(
            f"SEARCH_STRATEGY must be one of {', '.join(SEARCH_STRATEGIES)}, got {search_strategy!r}"
        )

    batch_size = int(os.getenv("BATCH_SIZE", "10"))
    if batch_size < 1:
        raise RuntimeError("BATCH_SIZE must be at least 1")

    return Config(
        dataforseo_api_base=os.getenv("DATAFORSEO_API_BASE", "https://api.dataforseo.com/v3").rstrip("/"),
        dataforseo_login=(os.getenv("DATAFORSEO_LOGIN") or "").strip() or None,
        dataforseo_password=(os.getenv("DATAFORSEO_PASSWORD") or "").strip() or None,
        search_strategy=search_strategy,
        batch_size=batch_size,
        batch_delay_seconds=max(float(os.getenv("BATCH_DELAY_SECONDS", "0.5")), 0.0),
        http_timeout=int(os.getenv("HTTP_TIMEOUT", "30")),
        search_http_attempts=max(int(os.getenv("SEARCH_HTTP_ATTEMPTS", "2")), 1),
        default_location_name=os.getenv("DEFAULT_LOCATION_NAME", "United Kingdom"),
        default_language_code=os.getenv("DEFAULT_LANGUAGE_CODE", "en"),
        default_location_code=_env_optional_int("DEFAULT_LOCATION_CODE"),
        max_domains_per_request=int(os.getenv("MAX_DOMAINS_PER_REQUEST", "1000")),
        export_dir=os.getenv("EXPORT_DIR", "./exports"),
        static_dir=(os.getenv("STATIC_DIR") or "").strip() or None,
        service_api_key=(os.getenv("SERVICE_API_KEY") or "").strip() or None,
        service_localhost_bypass=_env_bool("SERVICE_LOCALHOST_BYPASS", "true"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
