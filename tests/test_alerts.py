import pytest
from datetime import datetime, timedelta, timezone
from marketlens.core.alerts import GapAlertCenter

T0 = datetime(2024, 3, 7, 10, 0, tzinfo=timezone.utc)

def payload(i=0, alert_type="gap_1"):
    return {
        "instrumentId": 1,
        "instrumentName": f"NIFTY-{i}",
        "alertType": alert_type,
        "timeSlot": "10:00",
        "currentValue": 12.5,
        "baselineValue": 10.0,
        "deviationPercent": 25.0,
        "baselineDate": "2024-03-06",
        "triggeredAt": "2024-03-07T10:00:00Z",
    }

def test_receive_newest_first_and_capped():
    center = GapAlertCenter(max_visible=5, history_limit=50)
    for i in range(7):
        center.receive(payload(i), now=T0)

    assert len(center.alerts) == 5
    assert center.alerts[0].instrumentName == "NIFTY-6"
    assert len(center.history) == 7
    assert center.unread_count == 7

def test_history_limit():
    center = GapAlertCenter(history_limit=3)
    for i in range(5):
        center.receive(payload(i))
    assert [a.instrumentName for a in center.history] == ["NIFTY-4", "NIFTY-3", "NIFTY-2"]

def test_invalid_payload_raises():
    center = GapAlertCenter()
    with pytest.raises(ValueError):
        center.receive({**payload(), "alertType": "gap_3"})
    assert center.alerts == []

def test_dismiss_marks_read():
    center = GapAlertCenter()
    first = center.receive(payload(0))
    center.receive(payload(1))

    center.dismiss(first.id)
    assert [a.instrumentName for a in center.alerts] == ["NIFTY-1"]
    assert center.unread_count == 1

    center.mark_all_read()
    assert center.unread_count == 0
    center.clear_history()
    assert center.history == []

def test_mark_read_single():
    center = GapAlertCenter()
    alert = center.receive(payload(0))
    center.receive(payload(1))
    center.mark_read(alert.id)
    assert center.unread_count == 1
    # Still visible until dismissed
    assert len(center.alerts) == 2

def test_expire_after_window():
    center = GapAlertCenter(auto_dismiss_seconds=30)
    old = center.receive(payload(0), now=T0)
    center.receive(payload(1), now=T0 + timedelta(seconds=20))

    assert center.expire(now=T0 + timedelta(seconds=29)) == []
    assert center.expire(now=T0 + timedelta(seconds=31)) == [old.id]
    assert [a.instrumentName for a in center.alerts] == ["NIFTY-1"]

def test_expire_disabled():
    center = GapAlertCenter(auto_dismiss_seconds=0)
    center.receive(payload(0), now=T0)
    assert center.expire(now=T0 + timedelta(hours=1)) == []
    assert len(center.alerts) == 1

def test_default_times_are_utc():
    center = GapAlertCenter(auto_dismiss_seconds=30)
    alert = center.receive(payload(0))
    assert alert.received_at.tzinfo is not None
    assert center.expire() == []
