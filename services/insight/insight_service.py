# services/insight/insight_service.py
"""
One "why is this stock moving" request: validate the symbol, aggregate facts,
generate a schema-constrained narrative and validate it.
"""
from __future__ import annotations

import datetime as dt
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from openai import AsyncOpenAI

from config.settings import DEFAULT_CACHE_CONTROL, InsightSettings
from schemas.narrative import NARRATIVE_SCHEMA, NarrativeDocument
from services.ai.llm_service import OpenAIClient, build_openai_client
from services.finnhub.client import FinnhubClient
from services.insight.aggregator import FactAggregator, utc_now
from services.insight.errors import ConfigurationError, SymbolValidationError
from services.insight.generator import NarrativeGenerator
from services.insight.sources import build_sources
from services.insight.types import FactBundle
from services.insight.validator import (
    NarrativeResult,
    build_fallback_document,
    validate_narrative,
)
from utils.common_helpers import normalize_symbol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsightResult:
    document: NarrativeDocument
    bundle: FactBundle
    fallback_used: bool = False
    diagnostic: Optional[str] = None


class InsightService:
    def __init__(
        self,
        aggregator: FactAggregator,
        generator: NarrativeGenerator,
        *,
        cache_control: str = DEFAULT_CACHE_CONTROL,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self.aggregator = aggregator
        self.generator = generator
        self.cache_control = cache_control
        self._clock = clock

    @staticmethod
    def require_symbol(symbol: Optional[str]) -> str:
        sym = normalize_symbol(symbol)
        if not sym:
            raise SymbolValidationError("Missing symbol")
        return sym

    async def collect_facts(self, symbol: Optional[str]) -> FactBundle:
        sym = self.require_symbol(symbol)
        return await self.aggregator.aggregate(sym, self._clock())

    async def explain(self, symbol: Optional[str]) -> InsightResult:
        sym = self.require_symbol(symbol)
        start = time.perf_counter()

        bundle = await self.aggregator.aggregate(sym, self._clock())

        if not bundle.has_facts:
            # nothing to ground a narrative in; don't ask the model to invent one
            logger.warning("insight_no_facts symbol=%s gaps=%s", sym, ",".join(bundle.gaps))
            result = NarrativeResult(document=build_fallback_document(bundle), fallback_used=True)
        else:
            raw = await self.generator.generate(bundle)
            result = validate_narrative(raw, bundle, self.generator.schema)

        logger.info(
            "insight_completed symbol=%s sentiment=%s fallback=%s duration_ms=%.1f",
            sym, result.document.sentiment, result.fallback_used,
            (time.perf_counter() - start) * 1000,
        )
        return InsightResult(
            document=result.document,
            bundle=bundle,
            fallback_used=result.fallback_used,
            diagnostic=result.diagnostic,
        )


def build_insight_service(
    settings: InsightSettings,
    *,
    http: httpx.AsyncClient,
    openai_client: Optional[AsyncOpenAI] = None,
) -> InsightService:
    """
    Wire the service from settings. Both credentials are checked here, once,
    before anything touches the network.
    """
    if not (settings.openai_api_key or "").strip():
        raise ConfigurationError("Server missing OPENAI_API_KEY env var")
    if not (settings.finnhub_api_key or "").strip():
        raise ConfigurationError("Server missing FINNHUB_API_KEY env var")

    finnhub = FinnhubClient(settings.finnhub_api_key, http=http, base_url=settings.finnhub_base_url)
    aggregator = FactAggregator(
        finnhub,
        build_sources(settings.windows, include_earnings=settings.include_earnings),
        caps=settings.caps,
        call_timeout_s=settings.finnhub_timeout_s,
        total_timeout_s=settings.fetch_timeout_s,
    )

    llm = OpenAIClient(
        openai_client or build_openai_client(settings.openai_api_key, timeout_s=settings.openai_timeout_s),
        model=settings.openai_model,
        temperature=settings.temperature,
    )
    generator = NarrativeGenerator(llm, schema=NARRATIVE_SCHEMA, timeout_s=settings.openai_timeout_s)
    return InsightService(aggregator, generator, cache_control=settings.cache_control)
