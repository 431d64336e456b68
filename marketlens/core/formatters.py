"""
Display formatting for prices, volumes, percentages and dates.

Every function is total: bad input renders as a placeholder instead of raising.
"""
import math
from typing import Any, Optional
from marketlens.core.timestamps import parse_timestamp

NOT_AVAILABLE = "N/A"
NO_DATE = "-"
DEFAULT_PERCENT_DECIMALS = 1
MAX_PERCENT_DECIMALS = 10

CRORE = 10_000_000
LAKH = 100_000
THOUSAND = 1_000

def as_number(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None

def format_price(value: Any) -> str:
    # No decimals at or above 50, one decimal below
    num = as_number(value)
    if num is None:
        return NOT_AVAILABLE
    return f"{num:.0f}" if num >= 50 else f"{num:.1f}"

def format_volume(value: Any) -> str:
    num = as_number(value)
    if num is None:
        return NOT_AVAILABLE
    return f"{round(num):,}"

def format_volume_compact(value: Any) -> str:
    """Indian-style abbreviation used on compact cards: 1.2Cr, 3.4L, 5.6K"""
    num = as_number(value)
    if num is None:
        return NOT_AVAILABLE
    if num >= CRORE:
        return f"{num / CRORE:.1f}Cr"
    if num >= LAKH:
        return f"{num / LAKH:.1f}L"
    if num >= THOUSAND:
        return f"{num / THOUSAND:.1f}K"
    return str(round(num))

def format_percent(value: Any, decimals: int = DEFAULT_PERCENT_DECIMALS) -> str:
    num = as_number(value)
    if num is None:
        return NOT_AVAILABLE
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        decimals = DEFAULT_PERCENT_DECIMALS
    decimals = min(decimals, MAX_PERCENT_DECIMALS)
    sign = "+" if num > 0 else ""
    return f"{sign}{num:.{decimals}f}%"

def format_date_only(ts: Any) -> str:
    dt = parse_timestamp(ts)
    if dt is None:
        return NO_DATE
    return dt.strftime("%d/%m/%y")

def format_date_time(ts: Any) -> str:
    dt = parse_timestamp(ts)
    if dt is None:
        return NO_DATE
    return dt.strftime("%d/%m/%y %H:%M:%S")
