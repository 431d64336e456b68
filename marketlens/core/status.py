from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Literal, Optional
from pydantic import BaseModel
from marketlens.core.timestamps import utc_now

SymbolStatus = Literal["connected", "disconnected", "error"]

class StatusInfo(BaseModel):
    status: SymbolStatus
    last_update: datetime
    error_message: Optional[str] = None

class ConnectionStatusManager:
    def __init__(self):
        self._statuses: Dict[str, StatusInfo] = {}

    def update_symbol_status(self, symbol: str, status: SymbolStatus, error_message: Optional[str] = None,
                             now: Optional[datetime] = None):
        self._statuses[symbol] = StatusInfo(
            status=status,
            last_update=now or utc_now(),
            error_message=error_message,
        )

    def get_symbol_status(self, symbol: str) -> SymbolStatus:
        info = self._statuses.get(symbol)
        return info.status if info else "disconnected"

    def get_symbol_error(self, symbol: str) -> Optional[str]:
        info = self._statuses.get(symbol)
        return info.error_message if info else None

    def get_overall_status(self, symbols: Iterable[str]) -> str:
        statuses = [self.get_symbol_status(s) for s in symbols]
        if not statuses:
            return "disconnected"
        if "error" in statuses:
            return "error"
        connected = statuses.count("connected")
        if connected == len(statuses):
            return "connected"
        if connected > 0:
            return "partial"
        return "disconnected"

    def mark_all(self, status: SymbolStatus, error_message: Optional[str] = None):
        for symbol in list(self._statuses):
            self.update_symbol_status(symbol, status, error_message)

    def clear_symbol_status(self, symbol: str):
        self._statuses.pop(symbol, None)

    def clear_all_statuses(self):
        self._statuses.clear()

    def get_stale_connections(self, max_age_seconds: float = 30.0, now: Optional[datetime] = None) -> List[str]:
        """Symbols marked connected that have not been refreshed within max_age_seconds"""
        now = now or utc_now()
        limit = timedelta(seconds=max_age_seconds)
        return [
            symbol for symbol, info in self._statuses.items()
            if info.status == "connected" and now - info.last_update > limit
        ]

    def as_dict(self) -> Dict[str, SymbolStatus]:
        return {symbol: info.status for symbol, info in self._statuses.items()}

def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))

class MarketHours:
    """Weekday trading session in local time, [open, close)"""

    def __init__(self, open_at: str = "09:00", close_at: str = "16:00"):
        self.open_at = _parse_hhmm(open_at)
        self.close_at = _parse_hhmm(close_at)

    def is_market_open(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        if now.weekday() >= 5:
            return False
        return self.open_at <= now.time() < self.close_at

    def get_market_status(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now()
        if now.weekday() >= 5:
            return "weekend"
        return "open" if self.is_market_open(now) else "closed"

    def time_until_open(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        """None while the market is open"""
        now = now or datetime.now()
        if self.is_market_open(now):
            return None

        candidate = now.replace(hour=self.open_at.hour, minute=self.open_at.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        while candidate.weekday() >= 5:
            candidate += timedelta(days=1)
        return candidate - now
