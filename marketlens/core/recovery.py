from typing import Dict

class ErrorRecoveryManager:
    """Per-symbol retry bookkeeping with exponential backoff"""

    def __init__(self, max_retries: int = 3, retry_delay: float = 1.0):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._attempts: Dict[str, int] = {}

    def should_retry(self, symbol: str) -> bool:
        return self._attempts.get(symbol, 0) < self.max_retries

    def increment_retry(self, symbol: str) -> int:
        attempts = self._attempts.get(symbol, 0) + 1
        self._attempts[symbol] = attempts
        return attempts

    def reset_retries(self, symbol: str):
        self._attempts.pop(symbol, None)

    def get_retry_delay(self, symbol: str) -> float:
        # base delay * 2^attempts
        return self.retry_delay * (2 ** self._attempts.get(symbol, 0))

    def clear_all_retries(self):
        self._attempts.clear()
