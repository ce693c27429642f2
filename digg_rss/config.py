from __future__ import annotations

from dataclasses import dataclass
import os


def _env_str(name: str, default: str | None = None) -> str:
    value = os.getenv(name)
    if value is None:
        if default is None:
            raise RuntimeError(f"Missing required env: {name}")
        return default
    return value


def _env_int(name: str, default: int | None = None) -> int:
    value = os.getenv(name)
    if value is None:
        if default is None:
            raise RuntimeError(f"Missing required env: {name}")
        return default
    return int(value)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().lower()
    return value in {"1", "true", "yes", "y", "on"}


def _env_hours(name: str, default: str) -> tuple[int, ...]:
    raw = _env_str(name, default)
    hours = tuple(int(x) for x in raw.split(",") if x.strip())
    if not hours:
        raise RuntimeError(f"Env {name} must list at least one window")
    return hours


@dataclass(frozen=True)
class Config:
    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8787

    # Upstream
    site_base_url: str = "https://digg.com"
    graphql_endpoint: str = "https://apineapple-prod.digg.com/graphql"
    user_agent: str = "3HPM-DiggRSS/1.0 (+https://3holepunchmedia.ca)"
    http_timeout_seconds: int = 30
    good_enough_min: int = 5
    all_windows_hours: tuple[int, ...] = (24, 168)
    community_windows_hours: tuple[int, ...] = (24, 72, 168)
    preview_field: str = ""
    error_dump_max_chars: int = 2000

    # Caching
    feed_cache_ttl_seconds: int = 600
    tldr_cache_ttl_seconds: int = 3600

    # TL;DR enrichment
    tldr_enabled: bool = True
    tldr_fetch_attempts: int = 1

    # Metrics
    metrics_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: str = ""


def load_config() -> Config:
    return Config(
        host=_env_str("HOST", "127.0.0.1"),
        port=_env_int("PORT", 8787),
        site_base_url=_env_str("SITE_BASE_URL", "https://digg.com").rstrip("/"),
        graphql_endpoint=_env_str("GRAPHQL_ENDPOINT", "https://apineapple-prod.digg.com/graphql"),
        user_agent=_env_str("USER_AGENT", "3HPM-DiggRSS/1.0 (+https://3holepunchmedia.ca)"),
        http_timeout_seconds=_env_int("HTTP_TIMEOUT_SECONDS", 30),
        good_enough_min=_env_int("GOOD_ENOUGH_MIN", 5),
        all_windows_hours=_env_hours("ALL_WINDOWS_HOURS", "24,168"),
        community_windows_hours=_env_hours("COMMUNITY_WINDOWS_HOURS", "24,72,168"),
        preview_field=_env_str("PREVIEW_FIELD", "").strip(),
        error_dump_max_chars=_env_int("ERROR_DUMP_MAX_CHARS", 2000),
        feed_cache_ttl_seconds=_env_int("FEED_CACHE_TTL_SECONDS", 600),
        tldr_cache_ttl_seconds=_env_int("TLDR_CACHE_TTL_SECONDS", 3600),
        tldr_enabled=_env_bool("TLDR_ENABLED", True),
        tldr_fetch_attempts=_env_int("TLDR_FETCH_ATTEMPTS", 1),
        metrics_enabled=_env_bool("METRICS_ENABLED", True),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        log_file=_env_str("LOG_FILE", ""),
    )
