import asyncio
import inspect
from typing import Any, Dict, Iterable, List, Optional
import socketio
from socketio.exceptions import ConnectionError as FeedConnectionError
from marketlens.config import settings
from marketlens.core.alerts import GapAlertCenter
from marketlens.core.logger import logger
from marketlens.core.models import Tick
from marketlens.core.reconciler import SnapshotReconciler
from marketlens.core.recovery import ErrorRecoveryManager
from marketlens.core.status import ConnectionStatusManager, MarketHours
from marketlens.core.validator import is_valid_symbol

DISCONNECT_MESSAGES = {
    "io server disconnect": "Server disconnected the connection",
    "server disconnect": "Server disconnected the connection",
    "transport close": "Connection lost due to network issues",
    "transport error": "Connection error occurred",
}

class LiveFeedClient:
    """
    Socket.IO push feed for one view. Validated ticks go into the view's
    reconciler; connection problems only touch statuses, never snapshots.
    """

    def __init__(self, reconciler: SnapshotReconciler, url: Optional[str] = None,
                 market_hours: Optional[MarketHours] = None, alerts: Optional[GapAlertCenter] = None,
                 sio: Optional[socketio.AsyncClient] = None):
        self.reconciler = reconciler
        self.url = url or settings.FEED_URL
        self.market_hours = market_hours or MarketHours(settings.MARKET_OPEN, settings.MARKET_CLOSE)
        self.alerts = alerts
        self.sio = sio or socketio.AsyncClient(reconnection=True, reconnection_attempts=5, reconnection_delay=1)

        self.status = ConnectionStatusManager()
        self.recovery = ErrorRecoveryManager(settings.MAX_RETRIES, settings.RETRY_BASE_DELAY)
        self.is_connected = False
        self.error: Optional[str] = None
        self.current_subscriptions: List[str] = []
        self.listeners = []  # callbacks receiving accepted ticks
        self._retry_tasks: Dict[str, asyncio.Task] = {}

        self._register_handlers()

    def _register_handlers(self):
        handlers = {
            "connect": self._on_connect,
            "disconnect": self._on_disconnect,
            "connect_error": self._on_connect_error,
            "market-data": self._on_market_data,
            "symbol-update": self._on_market_data,
            "market-data-bulk": self._on_market_data_bulk,
            "subscription-confirmed": self._on_subscription_confirmed,
            "unsubscription-confirmed": self._on_unsubscription_confirmed,
            "current-subscriptions": self._on_current_subscriptions,
            "symbol-connection-status": self._on_symbol_connection_status,
            "symbol-error": self._on_symbol_error,
            "subscription-error": self._on_subscription_error,
            "gap-alert": self._on_gap_alert,
        }
        for event, handler in handlers.items():
            self.sio.on(event, handler)

    def add_listener(self, callback):
        """Register a callback for accepted ticks"""
        self.listeners.append(callback)

    async def start(self):
        logger.info(f"Connecting to live feed at {self.url}...")
        try:
            await self.sio.connect(self.url, transports=["websocket", "polling"])
        except FeedConnectionError as e:
            self.error = str(e)
            logger.error(f"Live feed connection failed: {e}")

    async def stop(self):
        logger.info("Stopping live feed...")
        self.cancel_retries()
        self.recovery.clear_all_retries()
        self.status.clear_all_statuses()
        if self.sio.connected:
            await self.sio.disconnect()

    # --- Control calls ---

    async def subscribe(self, symbols: Iterable[str]) -> List[str]:
        symbols = list(symbols)
        if not self.is_connected:
            logger.warning("Cannot subscribe: feed not connected")
            for symbol in symbols:
                self.status.update_symbol_status(symbol, "disconnected")
            return []

        if not self.market_hours.is_market_open():
            logger.warning("Cannot subscribe: market is closed")
            for symbol in symbols:
                self.status.update_symbol_status(symbol, "disconnected", "Market is closed")
            self.error = "Cannot subscribe to symbols: Market is closed"
            return []

        valid = []
        for symbol in symbols:
            if is_valid_symbol(symbol):
                valid.append(symbol)
            else:
                logger.warning(f"Invalid symbol format: {symbol!r}")
                self.status.update_symbol_status(symbol, "error", "Invalid symbol format")
        if not valid:
            self.error = "No valid symbols provided for subscription"
            return []

        for symbol in valid:
            # Confirmed as connected once the server acknowledges
            self.status.update_symbol_status(symbol, "disconnected")
            self.recovery.reset_retries(symbol)
        self.error = None

        await self.sio.emit("subscribe-symbols", valid)
        return valid

    async def unsubscribe(self, symbols: Iterable[str]) -> List[str]:
        if not self.is_connected:
            logger.warning("Cannot unsubscribe: feed not connected")
            return []

        valid = [s for s in symbols if is_valid_symbol(s)]
        if not valid:
            return []

        self.cancel_retries(valid)
        for symbol in valid:
            self.recovery.reset_retries(symbol)
            self.status.clear_symbol_status(symbol)

        await self.sio.emit("unsubscribe-symbols", valid)
        return valid

    async def get_subscriptions(self):
        if not self.is_connected:
            logger.warning("Cannot get subscriptions: feed not connected")
            return
        await self.sio.emit("get-subscriptions")

    # --- Retry scheduling ---

    def schedule_retry(self, symbol: str) -> bool:
        """Resubscribe later with backoff while the market is open and retries remain"""
        if not self.market_hours.is_market_open() or not self.recovery.should_retry(symbol):
            logger.info(f"Max retries exceeded or market closed for {symbol}")
            return False

        delay = self.recovery.get_retry_delay(symbol)
        attempt = self.recovery.increment_retry(symbol)
        self.cancel_retries([symbol])
        self._retry_tasks[symbol] = asyncio.create_task(self._retry(symbol, delay, attempt))
        return True

    async def _retry(self, symbol: str, delay: float, attempt: int):
        try:
            await asyncio.sleep(delay)
            if self.sio.connected:
                logger.info(f"Retrying subscription for {symbol} (attempt {attempt})")
                await self.sio.emit("subscribe-symbols", [symbol])
        finally:
            if self._retry_tasks.get(symbol) is asyncio.current_task():
                del self._retry_tasks[symbol]

    def cancel_retries(self, symbols: Optional[Iterable[str]] = None):
        targets = list(self._retry_tasks) if symbols is None else list(symbols)
        for symbol in targets:
            task = self._retry_tasks.pop(symbol, None)
            if task:
                task.cancel()

    @property
    def pending_retries(self) -> List[str]:
        return list(self._retry_tasks)

    # --- Event handlers ---

    async def _on_connect(self):
        logger.info("Connected to live feed")
        self.is_connected = True
        self.error = None
        # Restore symbol statuses after a reconnect
        await self.sio.emit("get-subscriptions")

    async def _on_disconnect(self, reason: Any = None):
        logger.warning(f"Live feed disconnected: {reason}")
        self.is_connected = False
        self.cancel_retries()
        # Statuses go stale; snapshots stay for last-known display
        self.status.mark_all("disconnected")
        self.error = DISCONNECT_MESSAGES.get(str(reason), f"Connection lost: {reason}")

    async def _on_connect_error(self, data: Any = None):
        logger.error(f"Live feed connection error: {data}")
        self.is_connected = False
        self.error = str(data)

    async def _on_market_data(self, data: Any):
        tick = self.reconciler.on_tick(data)
        if tick is None:
            symbol = data.get("symbol") if isinstance(data, dict) else None
            if isinstance(symbol, str) and symbol:
                self.status.update_symbol_status(symbol, "error", "Invalid data format")
            return
        self._mark_live(tick.symbol)
        await self._dispatch(tick)

    async def _on_market_data_bulk(self, payload: Any):
        items = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            logger.error(f"Invalid bulk market data payload: {payload}")
            self.error = "Invalid bulk data format received"
            return

        for tick in self.reconciler.on_ticks(items):
            self._mark_live(tick.symbol)
            await self._dispatch(tick)

    async def _on_subscription_confirmed(self, data: Dict[str, Any]):
        symbols = data.get("symbols") or []
        self.current_subscriptions = list(dict.fromkeys([*self.current_subscriptions, *symbols]))
        self.reconciler.on_subscribed(symbols)
        for symbol in symbols:
            self.status.update_symbol_status(symbol, "connected")
        logger.info(f"Subscription confirmed: {symbols}")

    async def _on_unsubscription_confirmed(self, data: Dict[str, Any]):
        symbols = data.get("symbols") or []
        self.current_subscriptions = [s for s in self.current_subscriptions if s not in symbols]
        self.reconciler.on_unsubscribed(symbols)
        for symbol in symbols:
            self.status.update_symbol_status(symbol, "disconnected")
        logger.info(f"Unsubscription confirmed: {symbols}")

    async def _on_current_subscriptions(self, data: Dict[str, Any]):
        symbols = data.get("symbols") or []
        self.current_subscriptions = list(symbols)
        self.reconciler.on_subscribed(symbols)
        self.status.clear_all_statuses()
        for symbol in symbols:
            self.status.update_symbol_status(symbol, "connected")

    async def _on_symbol_connection_status(self, data: Dict[str, Any]):
        symbol, status = data.get("symbol"), data.get("status")
        if symbol and status in ("connected", "disconnected", "error"):
            self.status.update_symbol_status(symbol, status)

    async def _on_symbol_error(self, data: Dict[str, Any]):
        symbol, error = data.get("symbol"), data.get("error")
        if not symbol:
            return
        logger.error(f"Symbol error for {symbol}: {error}")
        self.status.update_symbol_status(symbol, "error", error)
        self.reconciler.errors.record(symbol, str(error), "connection")
        self.error = f"Error for symbol {symbol}: {error}"
        self.schedule_retry(symbol)

    async def _on_subscription_error(self, data: Dict[str, Any]):
        error = data.get("error")
        for symbol in data.get("symbols") or []:
            self.status.update_symbol_status(symbol, "error", error)
            self.reconciler.errors.record(symbol, str(error), "subscription")
            self.schedule_retry(symbol)
        self.error = f"Subscription error: {error}"

    async def _on_gap_alert(self, payload: Dict[str, Any]):
        if self.alerts is None:
            return
        try:
            self.alerts.receive(payload)
        except ValueError as e:
            logger.warning(f"Invalid gap alert payload: {e}")

    def _mark_live(self, symbol: str):
        self.status.update_symbol_status(symbol, "connected")
        self.recovery.reset_retries(symbol)
        self.cancel_retries([symbol])

    async def _dispatch(self, tick: Tick):
        for listener in self.listeners:
            try:
                if inspect.iscoroutinefunction(listener):
                    await listener(tick)
                else:
                    listener(tick)
            except Exception as e:
                logger.error(f"Listener error: {e}")
