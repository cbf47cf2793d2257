"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.octav.fi/v1"

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = DEFAULT_API_URL
    api_key: str = ""
    request_timeout: float = 30.0
    page_size: int = 250


@dataclass(frozen=True)
class CacheConfig:
    directory: str = ".cache"
    portfolio_ttl: float = 24 * 60.0
    historical_ttl: float = 24 * 60 * 60.0
    transactions_ttl: float = 24 * 60 * 60.0


@dataclass(frozen=True)
class BucketingConfig:
    inclusion_threshold: float = 0.005
    display_threshold: float = 0.00005
    max_visible: int = 5
    other_label: str = "other"


@dataclass(frozen=True)
class CategoryConfig:
    display_name: str = ""
    category_type: str = "none"


@dataclass(frozen=True)
class AppConfig:
    api: ApiConfig = field(default_factory=ApiConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    bucketing: BucketingConfig = field(default_factory=BucketingConfig)
    categories: dict[str, CategoryConfig] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_api(raw: dict[str, Any]) -> ApiConfig:
    return ApiConfig(
        base_url=str(raw.get("base_url", DEFAULT_API_URL)).rstrip("/"),
        api_key=str(raw.get("api_key", "") or ""),
        request_timeout=float(raw.get("request_timeout", 30.0)),
        page_size=int(raw.get("page_size", 250)),
    )


def _build_cache(raw: dict[str, Any]) -> CacheConfig:
    return CacheConfig(
        directory=str(raw.get("directory", ".cache")),
        portfolio_ttl=float(raw.get("portfolio_ttl_seconds", CacheConfig.portfolio_ttl)),
        historical_ttl=float(
            raw.get("historical_ttl_seconds", CacheConfig.historical_ttl)
        ),
        transactions_ttl=float(
            raw.get("transactions_ttl_seconds", CacheConfig.transactions_ttl)
        ),
    )


def _build_bucketing(raw: dict[str, Any]) -> BucketingConfig:
    return BucketingConfig(
        inclusion_threshold=float(raw.get("inclusion_threshold", 0.005)),
        display_threshold=float(raw.get("display_threshold", 0.00005)),
        max_visible=int(raw.get("max_visible", 5)),
        other_label=str(raw.get("other_label", "other")),
    )


def _build_categories(raw: dict[str, Any]) -> dict[str, CategoryConfig]:
    categories: dict[str, CategoryConfig] = {}
    for key, cfg in raw.items():
        cfg = cfg or {}
        categories[key] = CategoryConfig(
            display_name=str(cfg.get("display_name", key)),
            category_type=str(cfg.get("category_type", "none")).lower(),
        )
    return categories


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        api=_build_api(raw.get("api", {})),
        cache=_build_cache(raw.get("cache", {})),
        bucketing=_build_bucketing(raw.get("bucketing", {})),
        categories=_build_categories(raw.get("categories", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.api.api_key:
        raise ValueError("Upstream API key is not set (api.api_key)")
    if cfg.api.request_timeout <= 0:
        raise ValueError("api.request_timeout must be positive")
    if cfg.api.page_size <= 0:
        raise ValueError("api.page_size must be positive")

    for name in ("portfolio_ttl", "historical_ttl", "transactions_ttl"):
        if getattr(cfg.cache, name) <= 0:
            raise ValueError(f"cache.{name}_seconds must be positive")

    b = cfg.bucketing
    for name in ("inclusion_threshold", "display_threshold"):
        if not 0.0 <= getattr(b, name) <= 1.0:
            raise ValueError(f"bucketing.{name} must be between 0 and 1")
    if b.max_visible < 1:
        raise ValueError("bucketing.max_visible must be at least 1")
    if not b.other_label:
        raise ValueError("bucketing.other_label must not be empty")
