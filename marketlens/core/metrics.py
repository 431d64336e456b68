"""
Derived metrics computed from raw quote fields.

Undefined ratios (zero or missing denominator) come back as None so callers
can render "N/A"; nothing here raises or returns NaN.

Null policy for gaps: a missing leg price makes the whole gap None; a missing
or zero base keeps the amount and leaves only the percentage as None.
"""
from datetime import datetime
from typing import Any, Iterable, NamedTuple, Optional, Union
from marketlens.core.formatters import as_number
from marketlens.core.models import Side, Tick
from marketlens.core.timestamps import parse_timestamp

DAYS_PER_MONTH = 30

# gap name -> (minuend leg, subtrahend leg)
LEG_PAIRS = {
    "next_near": ("next", "near"),
    "far_next": ("far", "next"),
    "far_near": ("far", "near"),
}

class GapResult(NamedTuple):
    amount: float
    percentage: Optional[float]

class PriceChange(NamedTuple):
    change: float
    change_percent: Optional[float]

class PriceRange(NamedTuple):
    min: float
    max: float
    range: float

def _ratio_percent(numerator: float, denominator: Optional[float]) -> Optional[float]:
    if denominator is None or denominator == 0:
        return None
    return numerator / denominator * 100

def gap(a: Any, b: Any, base: Any) -> Optional[GapResult]:
    a, b, base = as_number(a), as_number(b), as_number(base)
    if a is None or b is None:
        return None
    amount = a - b
    return GapResult(amount=amount, percentage=_ratio_percent(amount, base))

def otm_percent(underlying_price: Any, strike_price: Any, side: Union[Side, str]) -> Optional[float]:
    underlying, strike = as_number(underlying_price), as_number(strike_price)
    if underlying is None or strike is None:
        return None
    side = str(getattr(side, "value", side)).upper()
    if side == Side.CE.value:
        return _ratio_percent(strike - underlying, underlying)
    if side == Side.PE.value:
        return _ratio_percent(underlying - strike, underlying)
    return None

def premium_percent(premium: Any, underlying_price: Any) -> Optional[float]:
    premium = as_number(premium)
    if premium is None:
        return None
    return _ratio_percent(premium, as_number(underlying_price))

def monthly_premium_percent(premium_pct: Any, days_to_expiry: Any) -> Optional[float]:
    """Normalize a premium percentage to a 30-day holding period"""
    premium_pct, days = as_number(premium_pct), as_number(days_to_expiry)
    if premium_pct is None or days is None or days <= 0:
        return None
    return premium_pct * DAYS_PER_MONTH / days

def is_atm(underlying_price: Any, strike_price: Any, threshold_percent: float = 1.0) -> bool:
    underlying, strike = as_number(underlying_price), as_number(strike_price)
    if underlying is None or strike is None or underlying == 0:
        return False
    return abs(underlying - strike) / underlying * 100 < threshold_percent

def days_to_expiry(expiry: Any, as_of: Optional[datetime] = None) -> Optional[int]:
    """Calendar days from as_of (default today) to the expiry date"""
    expiry_dt = parse_timestamp(expiry)
    if expiry_dt is None:
        return None
    as_of = as_of or datetime.now(expiry_dt.tzinfo)
    return (expiry_dt.date() - as_of.date()).days

# --- OHLC helpers ---

def price_change(current: Tick, previous: Tick) -> Optional[PriceChange]:
    cur, prev = current.last_price, previous.last_price
    if cur is None or prev is None:
        return None
    change = cur - prev
    pct = _ratio_percent(change, prev)
    return PriceChange(
        change=round(change, 2),
        change_percent=round(pct, 2) if pct is not None else None,
    )

def price_range(ticks: Iterable[Tick]) -> PriceRange:
    prices = [
        p for t in ticks
        for p in (t.open, t.high, t.low, t.last_price)
        if p is not None
    ]
    if not prices:
        return PriceRange(0.0, 0.0, 0.0)
    lo, hi = min(prices), max(prices)
    return PriceRange(lo, hi, hi - lo)

def is_bullish(tick: Tick) -> bool:
    return tick.open is not None and tick.close is not None and tick.close > tick.open

def is_bearish(tick: Tick) -> bool:
    return tick.open is not None and tick.close is not None and tick.close < tick.open

def is_doji(tick: Tick, threshold: float = 0.01) -> bool:
    if None in (tick.open, tick.high, tick.low, tick.close):
        return False
    body = abs(tick.close - tick.open)
    span = tick.high - tick.low
    return span > 0 and body / span <= threshold
