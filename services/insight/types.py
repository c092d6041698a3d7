# services/insight/types.py
"""
Fact records shaped from Finnhub payloads, and the FactBundle handed to the
narrative generator. Everything here is plain data; shaping lives in
sources.py.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Quote:
    current_price: float
    previous_close: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None
    change: Optional[float] = None
    change_pct: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPrice": self.current_price,
            "previousClose": self.previous_close,
            "high": self.high,
            "low": self.low,
            "open": self.open,
            "change": self.change,
            "changePct": self.change_pct,
        }


@dataclass(frozen=True)
class CompanyProfile:
    name: Optional[str] = None
    industry: Optional[str] = None
    exchange: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    market_cap_musd: Optional[float] = None
    ipo: Optional[str] = None
    weburl: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "industry": self.industry,
            "exchange": self.exchange,
            "country": self.country,
            "currency": self.currency,
            "marketCapMillions": self.market_cap_musd,
            "ipo": self.ipo,
            "weburl": self.weburl,
        }


@dataclass(frozen=True)
class NewsItem:
    headline: str
    url: str
    source: Optional[str] = None
    published_at: Optional[str] = None  # ISO8601 UTC
    timestamp: int = 0                   # unix seconds, used for ordering
    summary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headline": self.headline,
            "source": self.source,
            "url": self.url,
            "publishedAt": self.published_at,
            "summary": self.summary,
        }


_CONSENSUS_FLOORS = ((4.5, "Strong Buy"), (3.5, "Buy"), (2.5, "Hold"), (1.5, "Sell"))


@dataclass(frozen=True)
class AnalystRecommendation:
    """One month of Finnhub recommendation-trend counts."""
    period: str
    strong_buy: int = 0
    buy: int = 0
    hold: int = 0
    sell: int = 0
    strong_sell: int = 0

    @property
    def total(self) -> int:
        return self.strong_buy + self.buy + self.hold + self.sell + self.strong_sell

    @property
    def consensus(self) -> str:
        """Label for the mean vote on a 1 (strong sell) to 5 (strong buy) scale."""
        if not self.total:
            return "N/A"
        votes = (self.strong_sell, self.sell, self.hold, self.buy, self.strong_buy)
        mean = sum(weight * n for weight, n in enumerate(votes, start=1)) / self.total
        for floor, label in _CONSENSUS_FLOORS:
            if mean >= floor:
                return label
        return "Strong Sell"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "strongBuy": self.strong_buy,
            "buy": self.buy,
            "hold": self.hold,
            "sell": self.sell,
            "strongSell": self.strong_sell,
            "total": self.total,
            "consensus": self.consensus,
        }


@dataclass(frozen=True)
class PriceTarget:
    target_mean: Optional[float] = None
    target_median: Optional[float] = None
    target_high: Optional[float] = None
    target_low: Optional[float] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetMean": self.target_mean,
            "targetMedian": self.target_median,
            "targetHigh": self.target_high,
            "targetLow": self.target_low,
            "lastUpdated": self.last_updated,
        }


@dataclass(frozen=True)
class InsiderTransaction:
    name: Optional[str] = None
    change: Optional[int] = None
    shares_after: Optional[int] = None
    transaction_date: Optional[str] = None
    transaction_price: Optional[float] = None
    transaction_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "change": self.change,
            "sharesAfter": self.shares_after,
            "transactionDate": self.transaction_date,
            "transactionPrice": self.transaction_price,
            "transactionCode": self.transaction_code,
        }


@dataclass(frozen=True)
class EarningsEvent:
    date: Optional[str] = None
    hour: Optional[str] = None  # bmo | amc | dmh
    quarter: Optional[int] = None
    year: Optional[int] = None
    eps_estimate: Optional[float] = None
    eps_actual: Optional[float] = None
    revenue_estimate: Optional[float] = None
    revenue_actual: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "hour": self.hour,
            "quarter": self.quarter,
            "year": self.year,
            "epsEstimate": self.eps_estimate,
            "epsActual": self.eps_actual,
            "revenueEstimate": self.revenue_estimate,
            "revenueActual": self.revenue_actual,
        }


@dataclass
class FactBundle:
    """Bounded snapshot of upstream facts for one symbol."""
    symbol: str
    as_of: str

    quote: Optional[Quote] = None
    profile: Optional[CompanyProfile] = None
    news: List[NewsItem] = field(default_factory=list)
    recommendations: List[AnalystRecommendation] = field(default_factory=list)
    price_target: Optional[PriceTarget] = None
    insider_transactions: List[InsiderTransaction] = field(default_factory=list)
    earnings: List[EarningsEvent] = field(default_factory=list)

    # Data quality tracking: names of sources that failed
    gaps: List[str] = field(default_factory=list)

    @property
    def has_facts(self) -> bool:
        return any((
            self.quote,
            self.profile,
            self.news,
            self.recommendations,
            self.price_target,
            self.insider_transactions,
            self.earnings,
        ))

    @property
    def news_urls(self) -> List[str]:
        return [n.url for n in self.news]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "asOf": self.as_of,
            "quote": self.quote.to_dict() if self.quote else None,
            "profile": self.profile.to_dict() if self.profile else None,
            "news": [n.to_dict() for n in self.news],
            "recommendationTrend": [r.to_dict() for r in self.recommendations],
            "priceTarget": self.price_target.to_dict() if self.price_target else None,
            "insiderTransactions": [t.to_dict() for t in self.insider_transactions],
            "earningsCalendar": [e.to_dict() for e in self.earnings],
            "dataGaps": list(self.gaps),
        }
