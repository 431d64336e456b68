import re
from collections.abc import Mapping
from typing import Any, Dict, Optional, Union
from marketlens.core.formatters import as_number
from marketlens.core.logger import logger
from marketlens.core.models import Rejected, Tick
from marketlens.core.timestamps import parse_timestamp, utc_now

SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,20}$")

# Tick field -> accepted payload keys, first match wins
FIELD_ALIASES: Dict[str, tuple] = {
    "ltp": ("ltp", "price", "lastPrice"),
    "open": ("open", "openPrice", "o"),
    "high": ("high", "highPrice", "h", "dayHigh"),
    "low": ("low", "lowPrice", "l", "dayLow"),
    "close": ("close", "closePrice", "c"),
    "volume": ("volume", "totalTradedVolume"),
    "oi": ("oi", "openInterest"),
    "bid": ("bid",),
    "bid_qty": ("bidQty", "bidqty", "bid_qty"),
    "ask": ("ask",),
    "ask_qty": ("askQty", "askqty", "ask_qty"),
}
TIMESTAMP_ALIASES = ("timestamp", "time", "datetime", "date", "lastUpdated")

NON_NEGATIVE_FIELDS = ("ltp", "open", "high", "low", "close", "volume", "oi")
QUOTE_FIELDS = ("bid", "bid_qty", "ask", "ask_qty")

def _pick(raw: Mapping, keys: tuple) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None

def is_valid_symbol(symbol: Any) -> bool:
    # Raw value must match; padded symbols are not normalized
    return isinstance(symbol, str) and SYMBOL_PATTERN.fullmatch(symbol) is not None

def _reject(reason: str, symbol: Optional[str] = None) -> Rejected:
    logger.warning(f"Tick Reject: {reason}", extra={"symbol": symbol})
    return Rejected(symbol=symbol, reason=reason)

def validate_tick(raw: Any) -> Union[Tick, Rejected]:
    """
    Gate a raw feed payload. Checks run in order and stop at the first failure:
    record shape, symbol, numeric fields, OHLC relationship, timestamp.
    A missing or unparseable timestamp is replaced with the ingestion time.
    """
    # 1. Structured record
    if not isinstance(raw, Mapping):
        return _reject("payload is not an object")

    # 2. Symbol
    symbol = raw.get("symbol")
    if not is_valid_symbol(symbol):
        return _reject(f"missing or invalid symbol {symbol!r}",
                       symbol if isinstance(symbol, str) else None)

    # 3. Numeric fields
    values: Dict[str, Optional[float]] = {}
    for field, keys in FIELD_ALIASES.items():
        value = _pick(raw, keys)
        if value is None:
            values[field] = None
            continue
        num = as_number(value)
        if num is None:
            return _reject(f"invalid {field}: {value!r}", symbol)
        values[field] = num

    for field in NON_NEGATIVE_FIELDS:
        if values[field] is not None and values[field] < 0:
            return _reject(f"negative {field}: {values[field]}", symbol)

    present_quotes = [f for f in QUOTE_FIELDS if values[f] is not None]
    if present_quotes:
        missing = [f for f in QUOTE_FIELDS if values[f] is None]
        if missing:
            return _reject(f"incomplete quote, missing {', '.join(missing)}", symbol)
        for field in QUOTE_FIELDS:
            if values[field] <= 0:
                return _reject(f"non-positive {field}: {values[field]}", symbol)

    # 4. OHLC relationship
    o, h, l, c = values["open"], values["high"], values["low"], values["close"]
    if None not in (o, h, l, c):
        if h < max(o, c) or l > min(o, c):
            return _reject(f"OHLC relationship violation o={o} h={h} l={l} c={c}", symbol)

    # 5. Timestamp
    raw_ts = _pick(raw, TIMESTAMP_ALIASES)
    timestamp = parse_timestamp(raw_ts)
    if timestamp is None:
        if raw_ts is not None:
            logger.debug(f"Invalid timestamp {raw_ts!r} for {symbol}, using ingestion time")
        timestamp = utc_now()

    return Tick(symbol=symbol, timestamp=timestamp, **values)
