import logging
import json
import sys
from datetime import datetime
from marketlens.config import settings

class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
        }
        symbol = getattr(record, "symbol", None)
        if symbol:
            log_record["symbol"] = symbol
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)

def setup_logger(name: str = "marketlens", level: str = "INFO"):
    logger = logging.getLogger(name)
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    # Remove existing handlers to avoid duplicates
    logger.handlers = []
    logger.addHandler(handler)

    return logger

logger = setup_logger(level=settings.LOG_LEVEL)
