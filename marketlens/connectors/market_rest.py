from typing import Any, Dict, List, Optional
import httpx
from marketlens.config import settings
from marketlens.core.logger import logger

class MarketDataError(Exception):
    """The API answered but reported success=false"""

class MarketDataREST:
    """Bulk-rows collaborator: paginated analytics endpoints of the market data API"""

    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url or settings.API_BASE_URL
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=10.0, transport=transport)

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self.client.get(endpoint, params=params or {})
            if response.status_code >= 400:
                logger.error(f"Market API Error {response.status_code}: {response.text}")
            response.raise_for_status()
            payload = response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP Error: {e}")
            raise
        except Exception:
            logger.exception("Request failed")
            raise

        if isinstance(payload, dict) and payload.get("success") is False:
            raise MarketDataError(f"{endpoint} returned success=false")
        return payload

    async def get_latest_covered_calls(self, instrument_id: str) -> List[Dict[str, Any]]:
        """Latest row per option symbol, used to seed historical snapshots"""
        payload = await self._get(f"/api/covered-calls/{instrument_id}/latest")
        return payload.get("data") or []

    async def get_covered_calls_details(self, instrument_id: str, page: int = 1, limit: int = 360,
                                        option_type: str = "ALL", expiry_date: Optional[str] = None,
                                        symbol: Optional[str] = None) -> Dict[str, Any]:
        """One page: {data, pagination, summary}"""
        params: Dict[str, Any] = {"page": page, "limit": limit}
        # "ALL" means no filter
        if option_type and option_type != "ALL":
            params["optionType"] = option_type
        if expiry_date and expiry_date != "ALL":
            params["expiryDate"] = expiry_date
        if symbol and symbol != "ALL":
            params["symbol"] = symbol
        return await self._get(f"/api/covered-calls/{instrument_id}/filtered", params)

    async def get_arbitrage_details(self, instrument_id: str, time_range: str = "day", page: int = 1,
                                    limit: int = 50, gap_filter: str = "both",
                                    min_gap: Optional[float] = None, max_gap: Optional[float] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "timeRange": time_range,
            "page": page,
            "limit": limit,
            "gapFilter": gap_filter,
        }
        if min_gap is not None:
            params["minGap"] = min_gap
        if max_gap is not None:
            params["maxGap"] = max_gap
        return await self._get(f"/api/arbitrage-details/{instrument_id}/filtered", params)

    async def close(self):
        await self.client.aclose()

# Global Instance
market_rest = MarketDataREST()
