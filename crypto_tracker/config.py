"""
Load config from config.yaml with optional env overrides.
Single source of truth for provider priority, refresh cadence, cache TTLs,
retry policy, ledger location and log level.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml

from .providers.resilience import RetryConfig

# Defaults if no YAML or env
_DEFAULTS = {
    "providers": {
        "priority": ["coingecko", "coincap", "binance"],
        "top_limit": 100,
    },
    "refresh": {
        "market_interval_s": 30,
        "portfolio_interval_s": 60,
        "market_enabled": True,
        "portfolio_enabled": True,
        "init_timeout_s": 8,
    },
    "cache": {
        "history_ttl_s": 300,
        "fiat_rate_ttl_s": 120,
    },
    "retry": {
        "max_retries": 3,
        "base_delay_s": 1.0,
        "backoff_factor": 2.0,
    },
    "ledger": {"path": "~/.crypto_tracker/portfolio.json"},
    "logging": {"level": "INFO"},
}


def _config_yaml_path() -> Path:
    """CRYPTO_TRACKER_CONFIG if set, else config.yaml at repo root (parent of package dir)."""
    explicit = os.environ.get("CRYPTO_TRACKER_CONFIG", "").strip()
    if explicit:
        return Path(explicit).expanduser()
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    config_path = _config_yaml_path()
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _env_overrides() -> dict:
    overrides: dict = {}
    path = os.environ.get("CRYPTO_TRACKER_LEDGER_PATH")
    if path:
        overrides.setdefault("ledger", {})["path"] = path
    level = os.environ.get("CRYPTO_TRACKER_LOG_LEVEL")
    if level:
        overrides.setdefault("logging", {})["level"] = level
    providers = os.environ.get("CRYPTO_TRACKER_PROVIDERS")
    if providers:
        names = [n.strip() for n in providers.split(",") if n.strip()]
        overrides.setdefault("providers", {})["priority"] = names
    return overrides


def get_config() -> dict:
    """Return merged config: defaults <- config.yaml <- env."""
    merged = _deep_merge(_DEFAULTS, _load_yaml())
    merged = _deep_merge(merged, _env_overrides())
    return merged


# Convenience accessors
def ledger_path() -> Path:
    return Path(str(get_config()["ledger"]["path"])).expanduser()


def provider_priority() -> List[str]:
    return [str(n) for n in get_config()["providers"]["priority"]]


def log_level() -> str:
    return str(get_config()["logging"]["level"]).upper()


@dataclass
class EngineSettings:
    """Tunables for one CryptoTracker instance."""

    top_limit: int = 100
    market_interval_s: float = 30.0
    portfolio_interval_s: float = 60.0
    market_refresh_enabled: bool = True
    portfolio_refresh_enabled: bool = True
    init_timeout_s: float = 8.0
    history_ttl_s: float = 300.0
    fiat_rate_ttl_s: float = 120.0
    retry: Optional[RetryConfig] = None

    @classmethod
    def from_config(cls, cfg: Optional[dict] = None) -> "EngineSettings":
        cfg = cfg if cfg is not None else get_config()
        refresh = cfg.get("refresh", {})
        cache = cfg.get("cache", {})
        retry = cfg.get("retry", {})
        return cls(
            top_limit=int(cfg.get("providers", {}).get("top_limit", 100)),
            market_interval_s=float(refresh.get("market_interval_s", 30)),
            portfolio_interval_s=float(refresh.get("portfolio_interval_s", 60)),
            market_refresh_enabled=bool(refresh.get("market_enabled", True)),
            portfolio_refresh_enabled=bool(refresh.get("portfolio_enabled", True)),
            init_timeout_s=float(refresh.get("init_timeout_s", 8)),
            history_ttl_s=float(cache.get("history_ttl_s", 300)),
            fiat_rate_ttl_s=float(cache.get("fiat_rate_ttl_s", 120)),
            retry=RetryConfig(
                max_retries=int(retry.get("max_retries", 3)),
                base_delay_s=float(retry.get("base_delay_s", 1.0)),
                backoff_factor=float(retry.get("backoff_factor", 2.0)),
            ),
        )
