from enum import Enum
from datetime import datetime
from typing import NamedTuple, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from marketlens.core.timestamps import utc_now

class Side(str, Enum):
    CE = "CE"
    PE = "PE"
    # Plain-symbol entities (spot, futures leg) have a single side
    SPOT = "SPOT"

class Provenance(str, Enum):
    EMPTY = "EMPTY"
    HISTORICAL = "HISTORICAL"
    LIVE = "LIVE"

class EntityKey(NamedTuple):
    key: Union[float, str]
    side: Side = Side.SPOT

class Tick(BaseModel):
    """One validated market update for a symbol"""
    model_config = ConfigDict(frozen=True)

    symbol: str
    timestamp: datetime
    ltp: Optional[float] = None
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[float] = None
    bid: Optional[float] = None
    bid_qty: Optional[float] = None
    ask: Optional[float] = None
    ask_qty: Optional[float] = None
    oi: Optional[float] = None

    @property
    def last_price(self) -> Optional[float]:
        return self.ltp if self.ltp is not None else self.close

class Snapshot(BaseModel):
    """Last known state of one entity side, tagged with where it came from"""
    model_config = ConfigDict(frozen=True)

    symbol: str
    timestamp: Optional[datetime] = None
    ltp: Optional[float] = None
    volume: Optional[float] = None
    bid: Optional[float] = None
    bid_qty: Optional[float] = None
    ask: Optional[float] = None
    ask_qty: Optional[float] = None
    oi: Optional[float] = None
    provenance: Provenance = Provenance.HISTORICAL

    @classmethod
    def from_tick(cls, tick: Tick) -> "Snapshot":
        return cls(
            symbol=tick.symbol,
            timestamp=tick.timestamp,
            ltp=tick.last_price,
            volume=tick.volume,
            bid=tick.bid,
            bid_qty=tick.bid_qty,
            ask=tick.ask,
            ask_qty=tick.ask_qty,
            oi=tick.oi,
            provenance=Provenance.LIVE,
        )

class Rejected(BaseModel):
    """Outcome of a tick that failed validation"""
    symbol: Optional[str] = None
    reason: str
    timestamp: datetime = Field(default_factory=utc_now)
