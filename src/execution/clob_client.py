# src/execution/clob_client.py
"""HTTP client for the order book venue."""
import logging
from typing import Optional

import httpx

from src.execution.errors import OrderSubmissionError
from src.models.trading import Side


logger = logging.getLogger(__name__)


class ClobClient:
    """Price lookups and signed-order submission over REST.

    Attributes:
        base_url: Venue API root.
        default_price: Price assumed when the venue cannot be reached.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        default_price: float = 0.5,
        api_key: str = "",
        api_secret: str = "",
        api_passphrase: str = "",
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_price = default_price

        headers = {}
        if api_key:
            headers["POLY_API_KEY"] = api_key
        if api_secret:
            headers["POLY_SECRET"] = api_secret
        if api_passphrase:
            headers["POLY_PASSPHRASE"] = api_passphrase

        self._http = http or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._headers = headers

    async def get_market_price(self, token_id: str, side: Side = Side.YES) -> float:
        """Current price of one outcome token.

        Args:
            token_id: Outcome token id.
            side: Which leg of the {yes, no} quote to read.

        Returns:
            The quoted price, or default_price if the venue call fails.
        """
        try:
            response = await self._http.get("/prices", params={"token_id": token_id})
            response.raise_for_status()
            data = response.json()
            price = float(data["yes"] if side == Side.YES else data["no"])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Price lookup failed for {token_id}, using default {self.default_price}: {e}")
            return self.default_price
        return price

    async def post_order(self, order: dict, signature: str, owner: str) -> dict:
        """Submit a signed order.

        Returns:
            Dict with tx_hash, filled_price (optional) and filled_size (optional).

        Raises:
            OrderSubmissionError: Venue rejected the order or was unreachable.
        """
        payload = {"order": order, "signature": signature, "owner": owner}
        try:
            response = await self._http.post("/order", json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            raise OrderSubmissionError(f"Order submission failed: {e}") from e

        if response.status_code >= 400:
            raise OrderSubmissionError(
                f"Order rejected ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        data = response.json()
        hashes = data.get("transactionsHashes") or []
        tx_hash = hashes[0] if hashes else data.get("orderID")
        if not tx_hash:
            raise OrderSubmissionError("Venue response carried no transaction hash")

        return {
            "tx_hash": tx_hash,
            "filled_price": data.get("filledPrice", data.get("price")),
            "filled_size": data.get("filledSize"),
        }

    async def close(self) -> None:
        await self._http.aclose()
