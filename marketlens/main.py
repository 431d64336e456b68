import asyncio
from typing import Optional
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from marketlens.config import settings
from marketlens.core.logger import logger
from marketlens.connectors.market_rest import market_rest
from marketlens.connectors.socketio_feed import LiveFeedClient
from marketlens.core.alerts import GapAlertCenter
from marketlens.core.formatters import format_date_time, format_percent, format_price, format_volume, format_volume_compact
from marketlens.core.reconciler import SnapshotReconciler, StrikeKeyResolver
from marketlens.core.summary import side_totals
from marketlens.core.watchdog import FeedWatchdog

# One reconciler per view; this service renders a single view
reconciler = SnapshotReconciler()
alerts = GapAlertCenter(
    max_visible=settings.ALERT_MAX_VISIBLE,
    history_limit=settings.ALERT_HISTORY_LIMIT,
    auto_dismiss_seconds=settings.ALERT_AUTO_DISMISS_SECONDS,
)
feed = LiveFeedClient(reconciler, alerts=alerts)
watchdog = FeedWatchdog(feed)

async def seed_from_rest():
    """Historical tier: latest covered-calls rows for the configured instrument"""
    if not settings.INSTRUMENT_ID:
        return 0
    reconciler.reset(StrikeKeyResolver())
    try:
        rows = await market_rest.get_latest_covered_calls(settings.INSTRUMENT_ID)
    except Exception as e:
        # View stays EMPTY until live ticks arrive
        logger.error(f"Historical seed failed: {e}")
        return 0
    return reconciler.seed_historical(rows)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"{settings.APP_NAME} Initialized (v{settings.APP_VERSION})")

    await seed_from_rest()
    await feed.start()
    await watchdog.start()

    if settings.FEED_SYMBOLS:
        await feed.subscribe(settings.FEED_SYMBOLS)

    yield

    # Shutdown
    logger.info("Shutdown Initiated...")
    watchdog.stop()
    await feed.stop()
    await market_rest.close()
    logger.info(f"{settings.APP_NAME} Shutdown Complete")

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

@app.get("/status")
async def get_status():
    symbols = feed.current_subscriptions or list(reconciler.subscriptions)
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "connected": feed.is_connected,
        "error": feed.error,
        "market": feed.market_hours.get_market_status(),
        "overall": feed.status.get_overall_status(symbols),
        "symbols": feed.status.as_dict(),
        "historical_mode": reconciler.is_historical_mode(),
        "historical_last_date": format_date_time(reconciler.historical_last_date),
        "rejections": reconciler.rejections,
    }

@app.get("/snapshots")
async def get_snapshots():
    view = reconciler.current_view()
    rows = []
    for key in reconciler.keys():
        for side, snap in view[key].items():
            rows.append({
                "key": key,
                "side": side.value,
                "symbol": snap.symbol,
                "ltp": format_price(snap.ltp),
                "volume": format_volume(snap.volume),
                "oi": format_volume_compact(snap.oi),
                "bid": format_price(snap.bid),
                "ask": format_price(snap.ask),
                "updated": format_date_time(snap.timestamp),
                "provenance": snap.provenance.value,
            })
    return {
        "historical_mode": reconciler.is_historical_mode(),
        "totals": {k: format_volume_compact(v) for k, v in side_totals(view).items()},
        "rows": rows,
    }

@app.get("/history/{symbol}")
async def get_history(symbol: str, n: Optional[int] = None):
    if not reconciler.history.has_data(symbol):
        raise HTTPException(status_code=404, detail=f"No history for {symbol}")
    ticks = reconciler.history.latest(symbol, n)
    return {
        "symbol": symbol,
        "ticks": [t.model_dump(mode="json") for t in ticks],
    }

@app.get("/errors")
async def get_errors():
    return {symbol: err.model_dump(mode="json") for symbol, err in reconciler.errors.as_dict().items()}

@app.get("/alerts")
async def get_alerts():
    return {
        "visible": [
            {**a.model_dump(mode="json"), "deviation": format_percent(a.deviationPercent, 2)}
            for a in alerts.alerts
        ],
        "unread_count": alerts.unread_count,
        "history": [a.model_dump(mode="json") for a in alerts.history],
    }

async def main():
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    # uvicorn installs its own SIGINT/SIGTERM handlers and drives the lifespan
    server = uvicorn.Server(uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_config=None))
    await server.serve()
    logger.info("Shutdown signal received")

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
