# services/insight/validator.py
"""
Turns raw model text into a NarrativeDocument.

Policy: malformed or non-conforming output is never returned as-is. It is
replaced by a deterministic fallback document built from the bundle alone,
and the failure is logged with a bounded excerpt of what the model sent.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from schemas.narrative import (
    NARRATIVE_SCHEMA,
    Citation,
    NarrativeDocument,
    NarrativeSchema,
    Section,
)
from services.ai.llm_service import parse_json_object
from services.insight.prompts import NO_CLEAR_DRIVER
from services.insight.types import FactBundle
from utils.common_helpers import excerpt

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 300
FALLBACK_CITATIONS = 3


@dataclass(frozen=True)
class NarrativeResult:
    document: NarrativeDocument
    fallback_used: bool = False
    diagnostic: Optional[str] = None


def updated_label(as_of: str) -> str:
    try:
        ts = dt.datetime.strptime(as_of, "%Y-%m-%dT%H:%M:%SZ")
    except (TypeError, ValueError):
        return f"Updated {as_of}"
    return f"Updated {ts:%b} {ts.day}, {ts:%H:%M} UTC"


def _what_we_know(bundle: FactBundle) -> str:
    name = (bundle.profile.name if bundle.profile else None) or bundle.symbol
    q = bundle.quote
    if q is None:
        return f"Market data for {bundle.symbol} is currently unavailable."
    if q.change_pct is not None:
        return f"{name} last traded at {q.current_price:.2f}, {q.change_pct:+.2f}% versus the previous close."
    return f"{name} last traded at {q.current_price:.2f}."


def build_fallback_document(bundle: FactBundle) -> NarrativeDocument:
    """Schema-conformant document stating only what the bundle holds."""
    sections = [
        Section(
            heading=NO_CLEAR_DRIVER,
            body=f"We could not identify a clear single driver for {bundle.symbol}'s move from the available facts.",
        ),
        Section(heading="What we know", body=_what_we_know(bundle)),
    ]
    if bundle.news:
        top = bundle.news[0]
        src = f" ({top.source})" if top.source else ""
        sections.append(Section(heading="Latest headline", body=f"{top.headline.rstrip('.')}{src}."))

    citations = [
        Citation(label=excerpt(n.headline, 120), url=n.url)
        for n in bundle.news[:FALLBACK_CITATIONS]
    ]
    return NarrativeDocument(
        symbol=bundle.symbol,
        title=f"{bundle.symbol}: {NO_CLEAR_DRIVER.lower()}",
        updatedLabel=updated_label(bundle.as_of),
        sentiment="unknown",
        sections=sections,
        citations=citations,
    )


def _grounded_citations(citations: List[Citation], allowed_urls: List[str], symbol: str) -> List[Citation]:
    allowed = set(allowed_urls)
    kept = [c for c in citations if c.url in allowed]
    if len(kept) != len(citations):
        logger.warning(
            "insight_citations_dropped symbol=%s dropped=%d",
            symbol, len(citations) - len(kept),
        )
    return kept


def validate_narrative(
    raw_text: Optional[str],
    bundle: FactBundle,
    schema: NarrativeSchema = NARRATIVE_SCHEMA,
) -> NarrativeResult:
    try:
        body = schema.validate(parse_json_object(raw_text))
    except (ValueError, ValidationError) as e:
        diagnostic = excerpt(raw_text, EXCERPT_CHARS)
        logger.warning(
            "insight_output_invalid symbol=%s schema=%s error=%s excerpt=%r",
            bundle.symbol, schema.version, excerpt(e, 200), diagnostic,
        )
        return NarrativeResult(
            document=build_fallback_document(bundle),
            fallback_used=True,
            diagnostic=diagnostic,
        )

    doc = NarrativeDocument(
        symbol=bundle.symbol,
        title=body.title,
        updatedLabel=body.updatedLabel,
        sentiment=body.sentiment,
        sections=list(body.sections),
        citations=_grounded_citations(list(body.citations), bundle.news_urls, bundle.symbol),
    )
    return NarrativeResult(document=doc)
