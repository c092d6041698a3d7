# config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_CACHE_CONTROL = "s-maxage=60, stale-while-revalidate=120"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    return int(raw) if raw else default


@dataclass(frozen=True)
class FactCaps:
    """Upper bounds on list-shaped facts; they bound the prompt size."""
    news: int = 10
    recommendations: int = 3
    insider_transactions: int = 3
    earnings: int = 3


@dataclass(frozen=True)
class FactWindows:
    """Trailing (or surrounding) day windows for date-ranged endpoints."""
    news_days: int = 2
    insider_days: int = 60
    earnings_days: int = 120


@dataclass(frozen=True)
class InsightSettings:
    # Finnhub
    finnhub_api_key: str = ""
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    finnhub_timeout_s: float = 5.0
    fetch_timeout_s: float = 8.0

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_timeout_s: float = 30.0
    temperature: float = 0.3

    # Facts
    caps: FactCaps = field(default_factory=FactCaps)
    windows: FactWindows = field(default_factory=FactWindows)
    include_earnings: bool = True

    # HTTP hint
    cache_control: str = DEFAULT_CACHE_CONTROL

    @staticmethod
    def from_env() -> "InsightSettings":
        load_dotenv()
        return InsightSettings(
            finnhub_api_key=_env_str("FINNHUB_API_KEY") or _env_str("FINNHUB_TOKEN"),
            finnhub_base_url=_env_str("FINNHUB_BASE_URL", "https://finnhub.io/api/v1"),
            finnhub_timeout_s=_env_float("FINNHUB_TIMEOUT_S", 5.0),
            fetch_timeout_s=_env_float("INSIGHT_FETCH_TIMEOUT_S", 8.0),

            openai_api_key=_env_str("OPENAI_API_KEY"),
            openai_model=_env_str("OPENAI_MODEL", "gpt-4o-mini"),
            openai_timeout_s=_env_float("OPENAI_TIMEOUT_S", 30.0),
            temperature=_env_float("AI_TEMPERATURE", 0.3),

            caps=FactCaps(
                news=_env_int("INSIGHT_MAX_NEWS", 10),
                recommendations=_env_int("INSIGHT_MAX_RECOMMENDATIONS", 3),
                insider_transactions=_env_int("INSIGHT_MAX_INSIDER", 3),
                earnings=_env_int("INSIGHT_MAX_EARNINGS", 3),
            ),
            windows=FactWindows(
                news_days=_env_int("INSIGHT_NEWS_DAYS", 2),
                insider_days=_env_int("INSIGHT_INSIDER_DAYS", 60),
                earnings_days=_env_int("INSIGHT_EARNINGS_DAYS", 120),
            ),
            include_earnings=_env_bool("INSIGHT_INCLUDE_EARNINGS", True),

            cache_control=_env_str("INSIGHT_CACHE_CONTROL", DEFAULT_CACHE_CONTROL),
        )
