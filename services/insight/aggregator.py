# services/insight/aggregator.py
"""
Best-effort fan-out over the Finnhub sources for one symbol.

All sources are fetched concurrently. A source that fails, times out or is
still running at the total deadline contributes its default value and is
listed in FactBundle.gaps; aggregation itself always returns a bundle.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from config.settings import FactCaps
from services.finnhub.client import FetchOutcome, FinnhubClient
from services.insight.errors import UpstreamTransportError
from services.insight.sources import DataSource, ShapeContext
from services.insight.types import FactBundle

logger = logging.getLogger(__name__)


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _iso_utc(ts: dt.datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    return ts.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class FactAggregator:
    def __init__(
        self,
        client: FinnhubClient,
        sources: Sequence[DataSource],
        *,
        caps: Optional[FactCaps] = None,
        call_timeout_s: float = 5.0,
        total_timeout_s: float = 8.0,
    ):
        self._client = client
        self._sources = list(sources)
        self._caps = caps or FactCaps()
        self._call_timeout_s = call_timeout_s
        self._total_timeout_s = total_timeout_s

    @property
    def sources(self) -> List[DataSource]:
        return list(self._sources)

    async def _fetch_one(self, src: DataSource, symbol: str, as_of: dt.datetime) -> FetchOutcome:
        try:
            return await asyncio.wait_for(
                self._client.fetch(src.path, src.params(symbol, as_of)),
                timeout=self._call_timeout_s,
            )
        except asyncio.TimeoutError:
            return FetchOutcome.failure(
                src.path,
                UpstreamTransportError(f"Finnhub {src.path} exceeded {self._call_timeout_s:.1f}s"),
            )

    async def aggregate(self, symbol: str, as_of: Optional[dt.datetime] = None) -> FactBundle:
        as_of = as_of or utc_now()
        start = time.perf_counter()

        tasks: Dict[asyncio.Task, DataSource] = {
            asyncio.create_task(self._fetch_one(src, symbol, as_of)): src
            for src in self._sources
        }
        pending: set = set()
        try:
            if tasks:
                _, pending = await asyncio.wait(tasks.keys(), timeout=self._total_timeout_s)
        finally:
            # covers both the deadline and the caller going away
            for task in tasks:
                if not task.done():
                    task.cancel()

        ctx = ShapeContext(as_of=as_of, caps=self._caps)
        values: Dict[str, Any] = {}
        gaps: List[str] = []

        for task, src in tasks.items():
            if task in pending:
                logger.warning("insight_source_deadline symbol=%s source=%s", symbol, src.name)
                values[src.field] = src.default()
                gaps.append(src.name)
                continue

            try:
                outcome = task.result()
            except Exception:
                logger.exception("insight_source_crashed symbol=%s source=%s", symbol, src.name)
                values[src.field] = src.default()
                gaps.append(src.name)
                continue

            if not outcome.ok:
                logger.warning(
                    "insight_source_failed symbol=%s source=%s error=%s",
                    symbol, src.name, outcome.error,
                )
                values[src.field] = src.default()
                gaps.append(src.name)
                continue

            try:
                values[src.field] = src.shape(outcome.payload, ctx)
            except Exception:
                logger.exception("insight_source_shape_failed symbol=%s source=%s", symbol, src.name)
                values[src.field] = src.default()
                gaps.append(src.name)

        bundle = FactBundle(symbol=symbol, as_of=_iso_utc(as_of), gaps=gaps, **values)
        logger.info(
            "insight_facts_aggregated symbol=%s sources=%d gaps=%d news=%d duration_ms=%.1f",
            symbol, len(self._sources), len(gaps), len(bundle.news),
            (time.perf_counter() - start) * 1000,
        )
        return bundle
