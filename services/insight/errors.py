# services/insight/errors.py
"""
Error taxonomy for the insight pipeline.

Every error that can reach the HTTP layer carries the status code it maps to.
Upstream fetch errors never reach it: they travel inside a FetchOutcome and are
turned into defaults by the aggregator.
"""
from __future__ import annotations

from typing import Optional


class InsightError(Exception):
    status_code: int = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(InsightError):
    """A required credential is missing."""

    status_code = 500


class SymbolValidationError(InsightError):
    """The request did not carry a usable symbol."""

    status_code = 400


class UpstreamFetchError(InsightError):
    """Base class for market-data fetch failures (recovered locally)."""

    status_code = 502


class UpstreamTransportError(UpstreamFetchError):
    """Network failure or timeout talking to the provider."""


class UpstreamStatusError(UpstreamFetchError):
    def __init__(self, upstream_status: int, detail: str):
        super().__init__(f"Finnhub {upstream_status}: {detail}")
        self.upstream_status = upstream_status
        self.detail = detail


class GenerationError(InsightError):
    """The model call failed, timed out or was refused."""

    status_code = 500
