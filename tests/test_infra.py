import pytest
from marketlens.config import Settings, settings
from marketlens.core.logger import logger
import json
import logging

def test_settings_load():
    """Verify settings are loaded from .env (or defaults)"""
    assert settings.APP_NAME == "MarketLens"
    assert settings.LOG_LEVEL == "INFO"
    assert settings.HISTORY_CAPACITY == 5
    assert settings.ATM_THRESHOLD_PERCENT == 1.0

def test_settings_symbols_from_list():
    s = Settings(FEED_SYMBOLS=["NIFTY", "BANKNIFTY"])
    assert s.FEED_SYMBOLS == ["NIFTY", "BANKNIFTY"]

def test_settings_symbols_from_comma_string(monkeypatch):
    monkeypatch.setenv("FEED_SYMBOLS", "NIFTY, BANKNIFTY,,")
    assert Settings().FEED_SYMBOLS == ["NIFTY", "BANKNIFTY"]

def test_settings_rejects_negative_capacity():
    with pytest.raises(ValueError):
        Settings(HISTORY_CAPACITY=-1)

def test_imports():
    """Verify critical dependencies are installed"""
    import fastapi
    import pydantic
    import pandas
    import socketio
    import httpx
    import aiohttp
    assert fastapi.__version__
    assert pydantic.__version__
    assert pandas.__version__
    assert httpx.__version__
    assert aiohttp.__version__

def test_logger_json_format(capsys):
    """Verify logger outputs JSON"""
    from marketlens.core.logger import setup_logger
    test_logger = setup_logger("test_json")
    test_logger.info("Test Log Message")

    captured = capsys.readouterr()
    lines = [l for l in captured.out.split('\n') if l]
    assert lines

    data = json.loads(lines[-1])
    assert data["message"] == "Test Log Message"
    assert data["level"] == "INFO"
    assert "timestamp" in data
    assert "symbol" not in data

def test_logger_includes_symbol(capsys):
    from marketlens.core.logger import setup_logger
    test_logger = setup_logger("test_json_symbol")
    test_logger.warning("Tick Reject: bad", extra={"symbol": "NIFTY"})

    lines = [l for l in capsys.readouterr().out.split('\n') if l]
    data = json.loads(lines[-1])
    assert data["symbol"] == "NIFTY"
    assert data["level"] == "WARNING"

def test_logger_exception_field(capsys):
    from marketlens.core.logger import setup_logger
    test_logger = setup_logger("test_json_exc")
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        test_logger.exception("Request failed")

    lines = [l for l in capsys.readouterr().out.split('\n') if l]
    data = json.loads(lines[-1])
    assert "RuntimeError: boom" in data["exception"]
