from datetime import datetime
from typing import Dict, Literal, Optional
from pydantic import BaseModel, Field
from marketlens.core.timestamps import utc_now

ErrorType = Literal["connection", "data", "subscription", "validation"]

class SymbolError(BaseModel):
    """Last problem seen for a symbol, kept for banners and status endpoints"""
    symbol: str
    error: str
    type: ErrorType = "data"
    timestamp: datetime = Field(default_factory=utc_now)

class ErrorLog:
    def __init__(self):
        self._errors: Dict[str, SymbolError] = {}

    def record(self, symbol: str, error: str, type: ErrorType = "data") -> SymbolError:
        entry = SymbolError(symbol=symbol, error=error, type=type)
        self._errors[symbol] = entry
        return entry

    def get(self, symbol: str) -> Optional[SymbolError]:
        return self._errors.get(symbol)

    def clear(self, symbol: str):
        self._errors.pop(symbol, None)

    def clear_all(self):
        self._errors.clear()

    def as_dict(self) -> Dict[str, SymbolError]:
        return dict(self._errors)

    def __len__(self):
        return len(self._errors)
