# routers/insight_routes.py
"""
FastAPI routes for the stock "Insight" narrative.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from schemas.narrative import NarrativeDocument
from services.insight.errors import ConfigurationError, InsightError
from services.insight.insight_service import InsightService
from utils.common_helpers import normalize_symbol

logger = logging.getLogger(__name__)

router = APIRouter()


def get_insight_service(request: Request) -> InsightService:
    """Service built once in the app lifespan; re-raise its startup error otherwise."""
    svc = getattr(request.app.state, "insight_service", None)
    if svc is None:
        raise getattr(request.app.state, "insight_error", None) or ConfigurationError(
            "Insight service is not configured"
        )
    return svc


def _unknown_error(e: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(e) or type(e).__name__})


@router.get("", response_model=NarrativeDocument)
async def get_insight(
    response: Response,
    symbol: Optional[str] = Query(None, description="Ticker symbol, case-insensitive"),
    svc: InsightService = Depends(get_insight_service),
):
    """
    Explain why a stock is moving today.

    Upstream data gaps never fail the request; malformed model output is
    replaced by a fallback document (flagged with X-Insight-Fallback: 1).
    """
    try:
        result = await svc.explain(symbol)
    except InsightError:
        raise
    except Exception as e:
        logger.exception("insight_failed symbol=%s", normalize_symbol(symbol))
        return _unknown_error(e)

    response.headers["Cache-Control"] = svc.cache_control
    if result.fallback_used:
        response.headers["X-Insight-Fallback"] = "1"
    return result.document


@router.get("/facts")
async def get_insight_facts(
    symbol: Optional[str] = Query(None, description="Ticker symbol, case-insensitive"),
    svc: InsightService = Depends(get_insight_service),
) -> Dict[str, Any]:
    """
    Aggregated facts without the model call.

    Useful for debugging what the narrative was grounded in.
    """
    try:
        bundle = await svc.collect_facts(symbol)
    except InsightError:
        raise
    except Exception as e:
        logger.exception("insight_facts_failed symbol=%s", normalize_symbol(symbol))
        return _unknown_error(e)

    return {"symbol": bundle.symbol, "facts": bundle.to_dict()}
