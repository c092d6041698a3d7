# services/insight/sources.py
"""
Declarative list of the Finnhub endpoints feeding a FactBundle.

Each DataSource knows its endpoint, how to build its query, how to shape the
raw payload into a bundle fragment and what to use when the fetch fails.
Shapers treat every provider field as optional: bad input yields the
source's empty value, never an exception.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from config.settings import FactCaps, FactWindows
from services.insight.types import (
    AnalystRecommendation,
    CompanyProfile,
    EarningsEvent,
    InsiderTransaction,
    NewsItem,
    PriceTarget,
    Quote,
)
from utils.common_helpers import (
    as_dict,
    as_list,
    safe_float,
    safe_int,
    safe_str,
    unix_to_iso,
)

MAX_SUMMARY_CHARS = 400


@dataclass(frozen=True)
class ShapeContext:
    as_of: dt.datetime
    caps: FactCaps


@dataclass(frozen=True)
class DataSource:
    name: str
    path: str
    field: str  # FactBundle attribute the shaped value lands in
    params: Callable[[str, dt.datetime], Dict[str, Any]]
    shape: Callable[[Any, ShapeContext], Any]
    default: Callable[[], Any]


# ----------------------------
# Shapers
# ----------------------------

def shape_quote(raw: Any, _ctx: ShapeContext) -> Optional[Quote]:
    d = as_dict(raw)
    price = safe_float(d.get("c"))
    # Finnhub answers unknown symbols with an all-zero quote
    if price in (None, 0):
        return None
    return Quote(
        current_price=price,
        previous_close=safe_float(d.get("pc")),
        high=safe_float(d.get("h")),
        low=safe_float(d.get("l")),
        open=safe_float(d.get("o")),
        change=safe_float(d.get("d")),
        change_pct=safe_float(d.get("dp")),
    )


def shape_profile(raw: Any, _ctx: ShapeContext) -> Optional[CompanyProfile]:
    d = as_dict(raw)
    name = safe_str(d.get("name"))
    industry = safe_str(d.get("finnhubIndustry"))
    if not name and not industry:
        return None
    return CompanyProfile(
        name=name,
        industry=industry,
        exchange=safe_str(d.get("exchange")),
        country=safe_str(d.get("country")),
        currency=safe_str(d.get("currency")),
        market_cap_musd=safe_float(d.get("marketCapitalization")),
        ipo=safe_str(d.get("ipo")),
        weburl=safe_str(d.get("weburl")),
    )


def _summary(x: Any) -> Optional[str]:
    s = safe_str(x)
    if s and len(s) > MAX_SUMMARY_CHARS:
        s = s[: MAX_SUMMARY_CHARS - 3].rstrip() + "..."
    return s


def shape_news(raw: Any, ctx: ShapeContext) -> List[NewsItem]:
    items: List[NewsItem] = []
    for n in as_list(raw):
        d = as_dict(n)
        headline = safe_str(d.get("headline"))
        url = safe_str(d.get("url"))
        if not headline or not url:
            continue
        ts = safe_int(d.get("datetime")) or 0
        items.append(NewsItem(
            headline=headline,
            url=url,
            source=safe_str(d.get("source")),
            published_at=unix_to_iso(ts),
            timestamp=ts,
            summary=_summary(d.get("summary")),
        ))
    # newest first
    items.sort(key=lambda x: x.timestamp, reverse=True)
    return items[: max(0, ctx.caps.news)]


def shape_recommendations(raw: Any, ctx: ShapeContext) -> List[AnalystRecommendation]:
    recs: List[AnalystRecommendation] = []
    for r in as_list(raw):
        d = as_dict(r)
        period = safe_str(d.get("period"))
        if not period:
            continue
        recs.append(AnalystRecommendation(
            period=period,
            strong_buy=safe_int(d.get("strongBuy")) or 0,
            buy=safe_int(d.get("buy")) or 0,
            hold=safe_int(d.get("hold")) or 0,
            sell=safe_int(d.get("sell")) or 0,
            strong_sell=safe_int(d.get("strongSell")) or 0,
        ))
    recs.sort(key=lambda x: x.period, reverse=True)
    return recs[: max(0, ctx.caps.recommendations)]


def shape_price_target(raw: Any, _ctx: ShapeContext) -> Optional[PriceTarget]:
    d = as_dict(raw)
    pt = PriceTarget(
        target_mean=safe_float(d.get("targetMean")),
        target_median=safe_float(d.get("targetMedian")),
        target_high=safe_float(d.get("targetHigh")),
        target_low=safe_float(d.get("targetLow")),
        last_updated=safe_str(d.get("lastUpdated")),
    )
    if all(v is None for v in (pt.target_mean, pt.target_median, pt.target_high, pt.target_low)):
        return None
    return pt


def shape_insider_transactions(raw: Any, ctx: ShapeContext) -> List[InsiderTransaction]:
    txs: List[InsiderTransaction] = []
    for t in as_list(as_dict(raw).get("data")):
        d = as_dict(t)
        if not d:
            continue
        txs.append(InsiderTransaction(
            name=safe_str(d.get("name")),
            change=safe_int(d.get("change")),
            shares_after=safe_int(d.get("share")),
            transaction_date=safe_str(d.get("transactionDate")),
            transaction_price=safe_float(d.get("transactionPrice")),
            transaction_code=safe_str(d.get("transactionCode")),
        ))
    txs.sort(key=lambda x: x.transaction_date or "", reverse=True)
    return txs[: max(0, ctx.caps.insider_transactions)]


def _days_from(date_str: Optional[str], as_of: dt.datetime) -> int:
    try:
        d = dt.date.fromisoformat(date_str or "")
    except ValueError:
        return 10**6
    return abs((d - as_of.date()).days)


def shape_earnings(raw: Any, ctx: ShapeContext) -> List[EarningsEvent]:
    events: List[EarningsEvent] = []
    for e in as_list(as_dict(raw).get("earningsCalendar")):
        d = as_dict(e)
        if not d:
            continue
        events.append(EarningsEvent(
            date=safe_str(d.get("date")),
            hour=safe_str(d.get("hour")),
            quarter=safe_int(d.get("quarter")),
            year=safe_int(d.get("year")),
            eps_estimate=safe_float(d.get("epsEstimate")),
            eps_actual=safe_float(d.get("epsActual")),
            revenue_estimate=safe_float(d.get("revenueEstimate")),
            revenue_actual=safe_float(d.get("revenueActual")),
        ))
    # keep the events closest to as_of, then present them chronologically
    events.sort(key=lambda x: _days_from(x.date, ctx.as_of))
    kept = events[: max(0, ctx.caps.earnings)]
    kept.sort(key=lambda x: x.date or "")
    return kept


# ----------------------------
# Source table
# ----------------------------

def _days_before(as_of: dt.datetime, days: int) -> dt.date:
    return (as_of - dt.timedelta(days=days)).date()


def build_sources(windows: FactWindows, *, include_earnings: bool = True) -> List[DataSource]:
    sources = [
        DataSource(
            name="quote",
            path="/quote",
            field="quote",
            params=lambda sym, _as_of: {"symbol": sym},
            shape=shape_quote,
            default=lambda: None,
        ),
        DataSource(
            name="profile",
            path="/stock/profile2",
            field="profile",
            params=lambda sym, _as_of: {"symbol": sym},
            shape=shape_profile,
            default=lambda: None,
        ),
        DataSource(
            name="news",
            path="/company-news",
            field="news",
            params=lambda sym, as_of: {
                "symbol": sym,
                "from": _days_before(as_of, windows.news_days),
                "to": as_of.date(),
            },
            shape=shape_news,
            default=list,
        ),
        DataSource(
            name="recommendations",
            path="/stock/recommendation",
            field="recommendations",
            params=lambda sym, _as_of: {"symbol": sym},
            shape=shape_recommendations,
            default=list,
        ),
        DataSource(
            name="price_target",
            path="/stock/price-target",
            field="price_target",
            params=lambda sym, _as_of: {"symbol": sym},
            shape=shape_price_target,
            default=lambda: None,
        ),
        DataSource(
            name="insider_transactions",
            path="/stock/insider-transactions",
            field="insider_transactions",
            params=lambda sym, as_of: {
                "symbol": sym,
                "from": _days_before(as_of, windows.insider_days),
                "to": as_of.date(),
            },
            shape=shape_insider_transactions,
            default=list,
        ),
    ]
    if include_earnings:
        sources.append(DataSource(
            name="earnings",
            path="/calendar/earnings",
            field="earnings",
            params=lambda sym, as_of: {
                "symbol": sym,
                "from": _days_before(as_of, windows.earnings_days),
                "to": (as_of + dt.timedelta(days=windows.earnings_days)).date(),
            },
            shape=shape_earnings,
            default=list,
        ))
    return sources
