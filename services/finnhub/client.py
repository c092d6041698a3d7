# services/finnhub/client.py
"""
Thin async wrapper around the Finnhub REST API.

`fetch` never raises for upstream problems: transport failures and non-2xx
responses come back as a failed FetchOutcome so callers decide what a failure
is worth. The only exception raised here is ConfigurationError, at
construction, when no token is configured.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from services.insight.errors import (
    ConfigurationError,
    UpstreamFetchError,
    UpstreamStatusError,
    UpstreamTransportError,
)
from utils.common_helpers import as_dict, excerpt, iso_date

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://finnhub.io/api/v1"


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one upstream call: a payload, or a typed failure."""
    path: str
    payload: Any = None
    error: Optional[UpstreamFetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, path: str, payload: Any) -> "FetchOutcome":
        return cls(path=path, payload=payload)

    @classmethod
    def failure(cls, path: str, error: UpstreamFetchError) -> "FetchOutcome":
        return cls(path=path, error=error)


def build_http_client(timeout_s: float = 5.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_s, connect=min(2.0, timeout_s)),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        headers={"accept": "application/json"},
    )


def _query_value(v: Any) -> str:
    if isinstance(v, (dt.date, dt.datetime)):
        return iso_date(v)
    return str(v)


def _status_message(r: httpx.Response, payload: Any) -> str:
    err = as_dict(payload).get("error")
    if err:
        return str(err)
    if isinstance(payload, str) and payload.strip():
        return excerpt(payload)
    body = r.text if r.content else ""
    if body.strip():
        return excerpt(body)
    return f"{r.status_code} {r.reason_phrase}".strip()


class FinnhubClient:
    """
    Authenticated Finnhub client. One instance per process, sharing one
    httpx.AsyncClient; pass a client in tests to control transport.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        http: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
    ):
        api_key = (api_key or "").strip()
        if not api_key:
            raise ConfigurationError("Server missing FINNHUB_API_KEY env var")
        self._api_key = api_key
        self._http = http
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")

    def _auth_params(self, params: Mapping[str, Any]) -> Dict[str, str]:
        q = {k: _query_value(v) for k, v in params.items() if v is not None}
        q["token"] = self._api_key
        return q

    async def fetch(self, path: str, params: Optional[Mapping[str, Any]] = None) -> FetchOutcome:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            r = await self._http.get(url, params=self._auth_params(params or {}))
        except httpx.TimeoutException as e:
            return FetchOutcome.failure(path, UpstreamTransportError(f"Finnhub {path} timed out: {type(e).__name__}"))
        except httpx.HTTPError as e:
            return FetchOutcome.failure(path, UpstreamTransportError(f"Finnhub {path} request failed: {type(e).__name__}"))

        payload = self._parse_body(path, r)

        if not r.is_success:
            return FetchOutcome.failure(path, UpstreamStatusError(r.status_code, _status_message(r, payload)))

        return FetchOutcome.success(path, payload)

    @staticmethod
    def _parse_body(path: str, r: httpx.Response) -> Any:
        ctype = (r.headers.get("content-type") or "").lower()
        try:
            if "json" in ctype:
                return r.json()
            return r.text
        except ValueError:
            logger.debug("finnhub_unparsable_body path=%s status=%s", path, r.status_code)
            return None
