import datetime as dt
import math
from typing import Any, Dict, List, Optional


def safe_float(x: Any) -> Optional[float]:
    try:
        if x is None or isinstance(x, bool):
            return None
        f = float(x)
        if math.isnan(f) or math.isinf(f):
            return None
        return f
    except (TypeError, ValueError):
        return None


def safe_int(x: Any) -> Optional[int]:
    f = safe_float(x)
    return None if f is None else int(f)


def safe_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def as_dict(x: Any) -> Dict[str, Any]:
    return x if isinstance(x, dict) else {}


def as_list(x: Any) -> List[Any]:
    return x if isinstance(x, list) else []


def iso_date(d: Any) -> str:
    """YYYY-MM-DD for dates/datetimes, str() for everything else."""
    if isinstance(d, (dt.date, dt.datetime)):
        return d.strftime("%Y-%m-%d")
    return str(d)


def unix_to_iso(ts: Any) -> Optional[str]:
    f = safe_float(ts)
    if f is None or f <= 0:
        return None
    try:
        return dt.datetime.fromtimestamp(f, tz=dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    except (OverflowError, OSError, ValueError):
        return None


def normalize_symbol(symbol: Optional[str]) -> str:
    return (symbol or "").strip().upper()


def excerpt(text: Any, limit: int = 300) -> str:
    """Bounded, single-line excerpt for logs and diagnostics."""
    s = "" if text is None else str(text)
    s = " ".join(s.split())
    return s if len(s) <= limit else s[: max(0, limit - 3)] + "..."
