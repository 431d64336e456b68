import pytest
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from marketlens.core.alerts import GapAlertCenter
from marketlens.core.recovery import ErrorRecoveryManager
from marketlens.core.status import ConnectionStatusManager
from marketlens.core.watchdog import FeedWatchdog

NOW = datetime(2024, 3, 7, 12, 0, tzinfo=timezone.utc)

def make_feed(market_open=True):
    feed = MagicMock()
    feed.is_connected = True
    feed.status = ConnectionStatusManager()
    feed.recovery = ErrorRecoveryManager()
    feed.alerts = GapAlertCenter(auto_dismiss_seconds=30)
    feed.pending_retries = []
    feed.market_hours.is_market_open.return_value = market_open
    return feed

@pytest.mark.asyncio
async def test_watchdog_monitor_lag():
    feed = make_feed()
    service = FeedWatchdog(feed, check_interval=0.01)

    # Run loop briefly
    service.is_running = True
    task = asyncio.create_task(service._monitor())

    await asyncio.sleep(0.05)
    service.is_running = False
    await task

    # It should have run without error
    assert service.last_check > 0

def test_stale_symbols_flagged_and_retried():
    feed = make_feed()
    feed.status.update_symbol_status("OLD", "connected", now=NOW - timedelta(seconds=60))
    feed.status.update_symbol_status("FRESH", "connected", now=NOW - timedelta(seconds=5))
    service = FeedWatchdog(feed, check_interval=1, stale_after=30)

    assert service.check_health(now=NOW) == ["OLD"]
    assert feed.status.get_symbol_status("OLD") == "error"
    assert feed.status.get_symbol_status("FRESH") == "connected"
    feed.schedule_retry.assert_called_once_with("OLD")

def test_market_close_clears_retries():
    feed = make_feed(market_open=False)
    feed.pending_retries = ["NIFTY"]
    feed.recovery.increment_retry("NIFTY")
    service = FeedWatchdog(feed)

    service.check_health(now=NOW)
    feed.cancel_retries.assert_called_once()
    assert feed.recovery.get_retry_delay("NIFTY") == feed.recovery.retry_delay

def test_disconnected_feed_skips_checks():
    feed = make_feed()
    feed.is_connected = False
    feed.status.update_symbol_status("OLD", "connected", now=NOW - timedelta(seconds=60))
    service = FeedWatchdog(feed, stale_after=30)

    assert service.check_health(now=NOW) == []
    feed.schedule_retry.assert_not_called()

def test_health_check_expires_alerts():
    feed = make_feed()
    feed.alerts.receive({
        "instrumentId": 1, "instrumentName": "NIFTY", "alertType": "gap_1", "timeSlot": "10:00",
        "currentValue": 1.0, "deviationPercent": 3.5, "triggeredAt": "2024-03-07T10:00:00Z",
    }, now=datetime.now(timezone.utc) - timedelta(minutes=5))

    FeedWatchdog(feed).check_health()
    assert feed.alerts.alerts == []

@pytest.mark.asyncio
async def test_start_stop():
    service = FeedWatchdog(make_feed(), check_interval=10)
    await service.start()
    assert service.is_running
    service.stop()
    assert not service.is_running
