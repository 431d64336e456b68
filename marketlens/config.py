from typing import Annotated, List
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "MarketLens"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Collaborators
    API_BASE_URL: str = Field(default="http://localhost:3002", description="REST API base URL")
    FEED_URL: str = Field(default="http://localhost:3002", description="Socket.IO push feed URL")
    FEED_SYMBOLS: Annotated[List[str], NoDecode] = Field(default=[], description="Symbols to subscribe to on startup")
    INSTRUMENT_ID: str = Field(default="", description="Covered-calls instrument used to seed historical rows")

    # Core
    HISTORY_CAPACITY: int = Field(default=5, ge=0, description="Ticks kept per symbol")
    ATM_THRESHOLD_PERCENT: float = 1.0

    # Feed health
    STALE_AFTER_SECONDS: float = 30.0
    HEALTH_CHECK_INTERVAL: float = 15.0
    MAX_RETRIES: int = 3
    RETRY_BASE_DELAY: float = 2.0

    # Market hours (local time, weekdays only)
    MARKET_OPEN: str = "09:00"
    MARKET_CLOSE: str = "16:00"

    # Gap alerts
    ALERT_MAX_VISIBLE: int = 5
    ALERT_HISTORY_LIMIT: int = 50
    ALERT_AUTO_DISMISS_SECONDS: float = 30.0

    @field_validator("FEED_SYMBOLS", mode="before")
    @classmethod
    def parse_symbols(cls, v):
        if isinstance(v, str) and not v.strip().startswith("["):
            # Handle comma-separated string: "NIFTY,BANKNIFTY"
            return [x.strip() for x in v.split(",") if x.strip()]
        return v

settings = Settings()
