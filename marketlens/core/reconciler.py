from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union
from marketlens.config import settings
from marketlens.core.errors import ErrorLog
from marketlens.core.formatters import as_number
from marketlens.core.history import TickHistory
from marketlens.core.logger import logger
from marketlens.core.models import EntityKey, Provenance, Rejected, Side, Snapshot, Tick
from marketlens.core.timestamps import parse_timestamp
from marketlens.core.validator import is_valid_symbol, validate_tick

KeyResolver = Callable[[str], Optional[EntityKey]]
EntityView = Dict[Union[float, str], Dict[Side, Snapshot]]

def side_from_symbol(symbol: str) -> Side:
    # Option symbols end in CE/PE; anything not ending in PE is treated as a call
    return Side.PE if symbol.upper().endswith("PE") else Side.CE

def _parse_side(value: Any, symbol: Optional[str]) -> Side:
    if isinstance(value, Side):
        return value
    if isinstance(value, str) and value.upper() in Side.__members__:
        return Side[value.upper()]
    return side_from_symbol(symbol) if symbol else Side.SPOT

def symbol_key_resolver(symbol: str) -> EntityKey:
    """One entity per symbol"""
    return EntityKey(symbol, Side.SPOT)

class StrikeKeyResolver:
    """Maps option symbols to (strike, side), built from bulk option rows"""

    def __init__(self, rows: Iterable[Mapping] = ()):
        self._index: Dict[str, EntityKey] = {}
        self.add_rows(rows)

    def add(self, symbol: str, strike: float, side: Union[Side, str]):
        self._index[symbol] = EntityKey(strike, _parse_side(side, symbol))

    def add_rows(self, rows: Iterable[Mapping]):
        for row in rows:
            symbol = row.get("option_symbol") or row.get("symbol")
            strike = as_number(row.get("strike"))
            if not symbol or strike is None:
                continue
            self.add(symbol, strike, row.get("option_type") or row.get("side"))

    def symbols(self) -> List[str]:
        return list(self._index.keys())

    def strikes(self) -> List[float]:
        return sorted({k.key for k in self._index.values()})

    def __call__(self, symbol: str) -> Optional[EntityKey]:
        return self._index.get(symbol)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._index

def row_to_entry(row: Mapping) -> Optional[Tuple[EntityKey, Snapshot]]:
    """Turn one REST row into an entity key and a historical snapshot"""
    symbol = row.get("option_symbol") or row.get("symbol")
    if row.get("key") is not None:
        key = row["key"]
    elif as_number(row.get("strike")) is not None:
        key = as_number(row.get("strike"))
    elif symbol:
        key = symbol
    else:
        return None

    if row.get("side") is not None or row.get("option_type") is not None:
        side = _parse_side(row.get("side") or row.get("option_type"), symbol)
    elif isinstance(key, float):
        side = side_from_symbol(symbol) if symbol else Side.CE
    else:
        side = Side.SPOT

    ltp = row.get("ltp")
    if ltp is None:
        ltp = row.get("premium", row.get("price"))

    snapshot = Snapshot(
        symbol=symbol or str(key),
        timestamp=parse_timestamp(row.get("time", row.get("timestamp"))),
        ltp=as_number(ltp),
        volume=as_number(row.get("volume")),
        bid=as_number(row.get("bid")),
        bid_qty=as_number(row.get("bidqty", row.get("bidQty"))),
        ask=as_number(row.get("ask")),
        ask_qty=as_number(row.get("askqty", row.get("askQty"))),
        oi=as_number(row.get("oi")),
        provenance=Provenance.HISTORICAL,
    )
    return EntityKey(key, side), snapshot

class SnapshotReconciler:
    """
    Current state per entity for one view, merged from two tiers.

    Historical rows only fill empty slots; live ticks always replace the slot.
    A slot moves EMPTY -> HISTORICAL -> LIVE and only returns to EMPTY through
    reset() or an unsubscribe. Disconnects never clear anything here.
    """

    def __init__(self, key_resolver: Optional[KeyResolver] = None, history_capacity: Optional[int] = None):
        self.key_resolver: KeyResolver = key_resolver or symbol_key_resolver
        capacity = settings.HISTORY_CAPACITY if history_capacity is None else history_capacity
        self.history = TickHistory(capacity)
        self.errors = ErrorLog()
        self.subscriptions: Set[str] = set()
        self.last_live: Dict[str, datetime] = {}
        self.historical_last_date: Optional[datetime] = None
        self.rejections = 0

        self._entities: EntityView = {}
        self._symbol_keys: Dict[str, EntityKey] = {}

    # --- Feed entry points ---

    def on_tick(self, raw: Any) -> Optional[Tick]:
        """Validate and apply one raw payload. Returns the accepted tick or None."""
        result = validate_tick(raw)
        if isinstance(result, Rejected):
            self.rejections += 1
            if result.symbol:
                self.errors.record(result.symbol, result.reason, "validation")
            return None

        self.errors.clear(result.symbol)
        self.history.push(result)
        self.apply_live_tick(result)
        return result

    def on_ticks(self, raws: Iterable[Any]) -> List[Tick]:
        accepted = []
        for raw in raws:
            tick = self.on_tick(raw)
            if tick is not None:
                accepted.append(tick)
        return accepted

    def on_subscribed(self, symbols: Iterable[str]):
        for symbol in symbols:
            if is_valid_symbol(symbol):
                self.subscriptions.add(symbol)

    def on_unsubscribed(self, symbols: Iterable[str]):
        # Idempotent: unknown symbols are a no-op
        for symbol in symbols:
            self.subscriptions.discard(symbol)
            self.history.clear(symbol)
            self.errors.clear(symbol)
            self.last_live.pop(symbol, None)
            self.reset_symbol(symbol)

    # --- Tiers ---

    def seed_historical(self, rows: Iterable[Mapping]) -> int:
        """Fill empty slots from bulk rows. Returns how many slots were filled."""
        filled = 0
        for row in rows:
            entry = row_to_entry(row)
            if entry is None:
                logger.debug(f"Skipping historical row without key: {row}")
                continue
            ek, snapshot = entry

            if isinstance(self.key_resolver, StrikeKeyResolver) and isinstance(ek.key, float):
                self.key_resolver.add(snapshot.symbol, ek.key, ek.side)

            ts = snapshot.timestamp
            if ts is not None and (self.historical_last_date is None or ts > self.historical_last_date):
                self.historical_last_date = ts

            group = self._entities.setdefault(ek.key, {})
            if ek.side in group:
                continue
            group[ek.side] = snapshot
            self._symbol_keys.setdefault(snapshot.symbol, ek)
            filled += 1

        logger.info(f"Historical seed filled {filled} slots")
        return filled

    def apply_live_tick(self, tick: Tick, key_resolver: Optional[KeyResolver] = None) -> Optional[EntityKey]:
        resolver = key_resolver or self.key_resolver
        ek = resolver(tick.symbol)
        if ek is None:
            logger.debug(f"No entity for {tick.symbol}, tick kept in history only")
            return None

        # Last write wins, including equal timestamps
        self._entities.setdefault(ek.key, {})[ek.side] = Snapshot.from_tick(tick)
        self._symbol_keys[tick.symbol] = ek
        self.last_live[tick.symbol] = tick.timestamp
        return ek

    # --- Resets ---

    def reset_symbol(self, symbol: str):
        ek = self._symbol_keys.pop(symbol, None) or self.key_resolver(symbol)
        if ek is None:
            return
        group = self._entities.get(ek.key)
        if group is None:
            return
        group.pop(ek.side, None)
        if not group:
            del self._entities[ek.key]

    def reset(self, key_resolver: Optional[KeyResolver] = None):
        """Back to EMPTY, e.g. when the selected expiry or symbol set changes"""
        if key_resolver is not None:
            self.key_resolver = key_resolver
        self._entities.clear()
        self._symbol_keys.clear()
        self.history.clear_all()
        self.errors.clear_all()
        self.last_live.clear()
        self.historical_last_date = None
        logger.info("Reconciler reset")

    # --- Read side ---

    def current_view(self) -> EntityView:
        # Snapshots are frozen, copying the containers is enough
        return {key: dict(sides) for key, sides in self._entities.items()}

    def snapshot(self, key, side: Side = Side.SPOT) -> Optional[Snapshot]:
        return self._entities.get(key, {}).get(side)

    def keys(self) -> list:
        return sorted(self._entities.keys(), key=lambda k: (isinstance(k, str), k))

    def provenance(self, key, side: Optional[Side] = None) -> Provenance:
        group = self._entities.get(key)
        if not group:
            return Provenance.EMPTY
        if side is not None:
            snap = group.get(side)
            return snap.provenance if snap else Provenance.EMPTY
        if any(s.provenance == Provenance.LIVE for s in group.values()):
            return Provenance.LIVE
        return Provenance.HISTORICAL

    def is_historical(self, key) -> bool:
        """True until a live tick has landed on this key since the last reset"""
        return self.provenance(key) != Provenance.LIVE

    def is_historical_mode(self) -> bool:
        """Table-level badge: no entity has live data yet"""
        return not any(self.provenance(k) == Provenance.LIVE for k in self._entities)
