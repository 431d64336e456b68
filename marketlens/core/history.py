from collections import deque
from typing import Deque, Dict, Iterable, List, Optional
from marketlens.core.logger import logger
from marketlens.core.models import Tick
from marketlens.core.validator import is_valid_symbol

class TickHistory:
    """
    Fixed-capacity tick history per symbol.

    Entries are kept in arrival order, oldest first and newest last. Once a
    symbol holds `capacity` ticks, each push evicts the oldest one. There is
    no age-based expiry.
    """

    def __init__(self, capacity: int = 5):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self._buffers: Dict[str, Deque[Tick]] = {}

    def push(self, tick: Tick):
        if self.capacity == 0:
            return
        buf = self._buffers.get(tick.symbol)
        if buf is None:
            # Created lazily on first accepted tick
            buf = self._buffers[tick.symbol] = deque(maxlen=self.capacity)
        buf.append(tick)

    def add_batch(self, symbol: str, ticks: Iterable[Tick]):
        """Bulk load, e.g. initial fill; ticks are ordered by timestamp first"""
        if not is_valid_symbol(symbol):
            logger.warning(f"History batch ignored for invalid symbol {symbol!r}")
            return
        ordered = sorted((t for t in ticks if t.symbol == symbol), key=lambda t: t.timestamp)
        for tick in ordered:
            self.push(tick)

    def latest(self, symbol: str, n: Optional[int] = None) -> List[Tick]:
        """Most recent n ticks (default: all), still oldest first"""
        buf = self._buffers.get(symbol)
        if not buf:
            return []
        items = list(buf)
        if n is None or n >= len(items):
            return items
        if n <= 0:
            return []
        return items[-n:]

    def latest_entry(self, symbol: str) -> Optional[Tick]:
        buf = self._buffers.get(symbol)
        return buf[-1] if buf else None

    def entry_count(self, symbol: str) -> int:
        return len(self._buffers.get(symbol, ()))

    def has_data(self, symbol: str) -> bool:
        return self.entry_count(symbol) > 0

    def symbols(self) -> List[str]:
        return list(self._buffers.keys())

    def clear(self, symbol: str):
        self._buffers.pop(symbol, None)

    def clear_all(self):
        self._buffers.clear()

    def memory_stats(self) -> dict:
        per_symbol = {sym: len(buf) for sym, buf in self._buffers.items()}
        return {
            "total_symbols": len(per_symbol),
            "total_entries": sum(per_symbol.values()),
            "max_entries_per_symbol": self.capacity,
            "symbol_stats": per_symbol,
        }
