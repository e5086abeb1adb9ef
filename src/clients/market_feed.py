# src/clients/market_feed.py
"""Active market listing from the venue's market metadata API."""
import json
import logging
from datetime import datetime
from typing import Optional

import httpx

from src.models.trading import MarketSnapshot


logger = logging.getLogger(__name__)


def _parse_list(value) -> list:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    return value if isinstance(value, list) else []


def _parse_end_date(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def market_from_payload(data: dict) -> MarketSnapshot:
    """Map one market listing row to a MarketSnapshot.

    outcomePrices and clobTokenIds arrive either as lists or as JSON-encoded
    strings, YES first.
    """
    prices = _parse_list(data.get("outcomePrices"))
    tokens = _parse_list(data.get("clobTokenIds"))

    yes_price = float(prices[0]) if prices else float(data.get("bestBid") or 0.5)
    no_price = float(prices[1]) if len(prices) > 1 else 1 - yes_price

    return MarketSnapshot(
        market_id=str(data.get("conditionId") or data.get("condition_id") or data.get("id") or ""),
        question=str(data.get("question") or ""),
        yes_price=min(1.0, max(0.0, yes_price)),
        no_price=min(1.0, max(0.0, no_price)),
        yes_token_id=str(tokens[0]) if tokens else None,
        no_token_id=str(tokens[1]) if len(tokens) > 1 else None,
        volume_24h=float(data.get("volume24hr") or data.get("volume") or 0),
        liquidity=float(data.get("liquidity") or 0),
        end_date=_parse_end_date(data.get("endDate")),
        active=bool(data.get("active", True)) and not bool(data.get("closed", False)),
    )


class MarketFeed:
    """Lists active markets ordered by 24h volume."""

    def __init__(
        self,
        base_url: str,
        limit: int = 50,
        timeout: float = 15.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.limit = limit
        self._http = http or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def fetch_active_markets(self) -> list[MarketSnapshot]:
        """Return active markets, or an empty list if the listing fails."""
        params = {
            "active": "true",
            "closed": "false",
            "limit": self.limit,
            "order": "volume24hr",
            "ascending": "false",
        }
        try:
            response = await self._http.get("/markets", params=params)
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch markets: {e}")
            return []

        if not isinstance(rows, list):
            logger.error(f"Unexpected market listing payload: {type(rows).__name__}")
            return []

        markets = []
        for row in rows:
            try:
                markets.append(market_from_payload(row))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed market row: {e}")
        return [m for m in markets if m.market_id]

    async def close(self) -> None:
        await self._http.aclose()
