import pytest
from datetime import datetime, timezone
from marketlens.core.models import Rejected, Tick
from marketlens.core.validator import is_valid_symbol, validate_tick

def test_ohlc_violation_rejected():
    result = validate_tick({"symbol": "NIFTY", "open": 11, "high": 10, "low": 12, "close": 11})
    assert isinstance(result, Rejected)
    assert result.symbol == "NIFTY"
    assert "OHLC" in result.reason

def test_missing_symbol_rejected():
    result = validate_tick({"ltp": 100})
    assert isinstance(result, Rejected)
    assert result.symbol is None

def test_non_mapping_rejected():
    assert isinstance(validate_tick(["NIFTY", 100]), Rejected)
    assert isinstance(validate_tick(None), Rejected)

@pytest.mark.parametrize("symbol", ["", "A" * 21, "NIFTY 50", "BAD$", 123])
def test_invalid_symbols(symbol):
    assert not is_valid_symbol(symbol)
    assert isinstance(validate_tick({"symbol": symbol, "ltp": 1}), Rejected)

def test_quote_without_ohlc_accepted():
    tick = validate_tick({"symbol": "NIFTY24000CE", "bid": 99.5, "bidQty": 50, "ask": 100.5, "askQty": 75})
    assert isinstance(tick, Tick)
    assert tick.bid == 99.5
    assert tick.ask_qty == 75
    assert tick.open is None

def test_incomplete_quote_rejected():
    result = validate_tick({"symbol": "NIFTY", "bid": 99.5, "ask": 100.5})
    assert isinstance(result, Rejected)
    assert "incomplete quote" in result.reason

def test_non_positive_quote_rejected():
    result = validate_tick({"symbol": "NIFTY", "bid": 0, "bidQty": 50, "ask": 100.5, "askQty": 75})
    assert isinstance(result, Rejected)

def test_negative_and_non_finite_prices_rejected():
    assert isinstance(validate_tick({"symbol": "NIFTY", "ltp": -1}), Rejected)
    assert isinstance(validate_tick({"symbol": "NIFTY", "volume": float("nan")}), Rejected)
    assert isinstance(validate_tick({"symbol": "NIFTY", "ltp": "abc"}), Rejected)

def test_field_aliases():
    tick = validate_tick({
        "symbol": "NIFTY", "lastPrice": 101, "openPrice": 100, "dayHigh": 102,
        "dayLow": 99, "close": 101, "bidqty": 10, "bid": 100.5, "askqty": 5, "ask": 101.5,
        "openInterest": 1200,
    })
    assert isinstance(tick, Tick)
    assert tick.ltp == 101
    assert tick.high == 102
    assert tick.low == 99
    assert tick.oi == 1200
    assert tick.bid_qty == 10

def test_timestamp_parsed():
    tick = validate_tick({"symbol": "NIFTY", "ltp": 1, "timestamp": "2024-03-07T09:15:00Z"})
    assert tick.timestamp == datetime(2024, 3, 7, 9, 15, tzinfo=timezone.utc)

    tick = validate_tick({"symbol": "NIFTY", "ltp": 1, "time": 1709802900000})
    assert tick.timestamp == datetime(2024, 3, 7, 9, 15, tzinfo=timezone.utc)

def test_invalid_timestamp_substituted():
    before = datetime.now(timezone.utc)
    tick = validate_tick({"symbol": "NIFTY", "ltp": 1, "timestamp": "yesterday-ish"})
    assert isinstance(tick, Tick)
    assert tick.timestamp >= before

def test_missing_timestamp_substituted():
    tick = validate_tick({"symbol": "NIFTY", "ltp": 1})
    assert isinstance(tick, Tick)
    assert tick.timestamp.tzinfo is not None

def test_rejection_logged(caplog):
    validate_tick({"symbol": "NIFTY", "ltp": -5})
    assert any("Tick Reject" in r.getMessage() for r in caplog.records)

@pytest.mark.parametrize("symbol", [" NIFTY ", "NIFTY ", "\tNIFTY", "NIFTY\n", " " + "A" * 20])
def test_padded_symbols_rejected(symbol):
    assert not is_valid_symbol(symbol)
    result = validate_tick({"symbol": symbol, "ltp": 1})
    assert isinstance(result, Rejected)
    assert result.symbol == symbol

def test_rejection_timestamp_is_utc():
    result = validate_tick({"ltp": 1})
    assert result.timestamp.tzinfo is not None
