import math
from datetime import datetime, timezone
from marketlens.core.formatters import (
    as_number, format_date_only, format_date_time, format_percent,
    format_price, format_volume, format_volume_compact,
)

def test_price_precision_boundary():
    assert format_price(49.96) == "50.0"
    assert format_price(50.0) == "50"
    assert format_price(1234.56) == "1235"
    assert format_price(12.34) == "12.3"
    assert format_price(0) == "0.0"

def test_price_placeholder():
    assert format_price(float("nan")) == "N/A"
    assert format_price(None) == "N/A"
    assert format_price(math.inf) == "N/A"
    assert format_price("abc") == "N/A"

def test_volume_grouping():
    assert format_volume(1234567) == "1,234,567"
    assert format_volume(999) == "999"
    assert format_volume(None) == "N/A"

def test_volume_compact():
    assert format_volume_compact(12_300_000) == "1.2Cr"
    assert format_volume_compact(250_000) == "2.5L"
    assert format_volume_compact(1_500) == "1.5K"
    assert format_volume_compact(999) == "999"
    assert format_volume_compact(float("nan")) == "N/A"

def test_percent_sign():
    assert format_percent(0.5) == "+0.5%"
    assert format_percent(-5) == "-5.0%"
    assert format_percent(0) == "0.0%"
    assert format_percent(1.234, 2) == "+1.23%"
    assert format_percent(None) == "N/A"

def test_dates():
    ts = datetime(2024, 3, 7, 9, 15, 30, tzinfo=timezone.utc)
    assert format_date_only(ts) == "07/03/24"
    assert format_date_time(ts) == "07/03/24 09:15:30"
    assert format_date_time("2024-03-07T09:15:30Z") == "07/03/24 09:15:30"

def test_dates_placeholder():
    assert format_date_only(None) == "-"
    assert format_date_time("not a date") == "-"
    assert format_date_time("") == "-"

def test_as_number():
    assert as_number("12.5") == 12.5
    assert as_number(True) is None
    assert as_number(float("inf")) is None
    assert as_number([1]) is None

def test_percent_bad_decimals_fall_back():
    assert format_percent(1.0, -1) == "+1.0%"
    assert format_percent(1.0, "2") == "+1.0%"
    assert format_percent(1.0, 1.5) == "+1.0%"
    assert format_percent(1.0, None) == "+1.0%"
    assert format_percent(1.0, True) == "+1.0%"
    assert format_percent(1.0, 0) == "+1%"
    assert format_percent(1.0, 10**9) == "+1.0000000000%"
