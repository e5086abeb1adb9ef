# src/clients/service_clients.py
"""httpx clients the agent uses to reach the risk and execution services."""
import logging
from typing import Any, Optional

import httpx

from src.auth.service_tokens import ServiceTokenManager
from src.config.constants import AGENT_SERVICE
from src.execution.models import TradeExecutionRequest, TradeExecutionResult
from src.models.records import TradeStatus
from src.models.trading import PortfolioState, TradeSignal
from src.risk.models import RiskCheckResult, RiskMetrics


logger = logging.getLogger(__name__)


class ServiceClient:
    """Base for authenticated calls to a sibling service.

    A fresh token is issued per request so long-running agents never send
    an expired one.
    """

    def __init__(
        self,
        base_url: str,
        tokens: ServiceTokenManager,
        service: str = AGENT_SERVICE,
        timeout: float = 30.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service = service
        self._tokens = tokens
        self._http = http or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._tokens.issue(self.service)}"}

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        response = await self._http.request(
            method,
            path,
            json=json,
            params=params,
            headers=self._headers(),
            timeout=httpx.USE_CLIENT_DEFAULT if timeout is None else timeout,
        )
        if response.status_code >= 400 and response.status_code != 404:
            logger.warning(f"{method} {self.base_url}{path} returned {response.status_code}: {response.text}")
            response.raise_for_status()
        return response

    async def close(self) -> None:
        await self._http.aclose()


class RiskGateClient(ServiceClient):
    """Client for the risk gate service."""

    async def validate_trade(self, signal: TradeSignal, portfolio: PortfolioState) -> RiskCheckResult:
        body = {
            "signal": signal.model_dump(mode="json"),
            "portfolio": portfolio.model_dump(mode="json"),
        }
        data = (await self._request("POST", "/validate-trade", json=body)).json()
        return RiskCheckResult(
            approved=data["approved"],
            adjusted_size_usd=data["adjusted_size_usd"],
            rejection_reasons=data.get("rejection_reasons", []),
            warnings=data.get("warnings", []),
            risk_metrics=RiskMetrics(**data.get("risk_metrics", {})),
        )

    async def get_portfolio_risk(self) -> dict:
        return (await self._request("GET", "/portfolio-risk")).json()

    async def get_risk_events(self, limit: int = 50) -> list[dict]:
        return (await self._request("GET", "/risk-events", params={"limit": limit})).json()


class ExecutionClient(ServiceClient):
    """Client for the order execution service.

    execute_trade blocks until the order confirms or its retries run out, so
    it gets its own, longer read timeout.
    """

    def __init__(
        self,
        base_url: str,
        tokens: ServiceTokenManager,
        service: str = AGENT_SERVICE,
        timeout: float = 30.0,
        http: Optional[httpx.AsyncClient] = None,
        execute_timeout: float = 300.0,
    ):
        super().__init__(base_url, tokens, service, timeout, http)
        self.execute_timeout = execute_timeout

    async def execute_trade(self, request: TradeExecutionRequest) -> TradeExecutionResult:
        response = await self._request(
            "POST", "/execute-trade", json=request.model_dump(mode="json"), timeout=self.execute_timeout
        )
        data = response.json()
        return TradeExecutionResult(
            success=data["success"],
            trade_id=data["trade_id"],
            status=TradeStatus(data["status"]),
            tx_hash=data.get("tx_hash"),
            filled_price=data.get("filled_price"),
            filled_size_usd=data.get("filled_size_usd"),
            slippage=data.get("slippage"),
            gas_used=data.get("gas_used"),
            error_message=data.get("error_message"),
            retry_count=data.get("retry_count", 0),
        )

    async def get_trade(self, trade_id: str) -> Optional[dict]:
        response = await self._request("GET", f"/trade/{trade_id}")
        if response.status_code == 404:
            return None
        return response.json()

    async def cancel_order(self, trade_id: str) -> bool:
        response = await self._request("POST", f"/cancel/{trade_id}")
        if response.status_code == 404:
            return False
        return bool(response.json().get("cancelled"))
