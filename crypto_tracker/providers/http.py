"""
Shared HTTP plumbing for the built-in REST providers.

Maps transport failures to TransientNetworkError (retried by the invoker) and
HTTP status or payload problems to ProviderError (not retried).
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from ..core.errors import CryptoTrackerError, ProviderError, TransientNetworkError

HTTP_TIMEOUT_S = 15.0
USER_AGENT = "crypto-tracker/1.0"


def to_float(x: Any, default: float = 0.0) -> float:
    if x is None:
        return default
    try:
        return float(x)
    except (TypeError, ValueError):
        return default


def to_optional_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def to_optional_int(x: Any) -> Optional[int]:
    if x is None:
        return None
    try:
        return int(x)
    except (TypeError, ValueError):
        return None


class HttpProvider:
    """Base class for providers backed by a public JSON REST API."""

    name = ""
    base_url = ""
    timeout_s = HTTP_TIMEOUT_S
    ping_path = "ping"

    @property
    def provider_name(self) -> str:
        return self.name

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        try:
            resp = requests.get(
                url,
                params=params,
                timeout=self.timeout_s,
                headers={"User-Agent": USER_AGENT},
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientNetworkError(f"{self.name}: {exc}") from exc

        if resp.status_code == 429:
            raise ProviderError(self.name, "rate limit (HTTP 429)")
        if resp.status_code >= 400:
            raise ProviderError(self.name, f"HTTP {resp.status_code} for {path}")
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(self.name, f"invalid JSON from {path}", exc) from exc

    def ping(self) -> bool:
        try:
            self._get_json(self.ping_path)
        except CryptoTrackerError:
            return False
        return True
