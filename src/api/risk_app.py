# src/api/risk_app.py
"""HTTP surface of the risk gate service."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request

from src.api.deps import require_service
from src.api.schemas import KillSwitchRequest, MonteCarloRequest
from src.api.services import RiskServices, build_risk_services
from src.auth.service_tokens import ServiceTokenManager
from src.config.constants import ADMIN_SERVICE, AGENT_SERVICE
from src.config.settings import Settings
from src.risk.models import RiskCheckRequest
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)

router = APIRouter(tags=["risk"])

agent_only = require_service(AGENT_SERVICE)
admin_or_agent = require_service(ADMIN_SERVICE, AGENT_SERVICE)


def _services(request: Request) -> RiskServices:
    return request.app.state.risk


@router.post("/validate-trade", dependencies=[Depends(agent_only)])
async def validate_trade(body: RiskCheckRequest, request: Request):
    try:
        return await _services(request).sizer.validate_trade(body)
    except Exception as e:
        logger.exception(f"Trade validation failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/portfolio-risk", dependencies=[Depends(agent_only)])
async def portfolio_risk(request: Request):
    return await _services(request).sizer.get_portfolio_risk()


@router.post("/monte-carlo", dependencies=[Depends(agent_only)])
async def monte_carlo(body: MonteCarloRequest, request: Request):
    try:
        return await _services(request).monte_carlo.simulate(body.portfolio_value, body.config)
    except Exception as e:
        logger.exception(f"Monte Carlo simulation failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/kill-switch")
async def kill_switch(
    body: KillSwitchRequest,
    request: Request,
    claims: dict = Depends(admin_or_agent),
):
    drawdown = _services(request).drawdown
    if body.action == "activate":
        await drawdown.activate_kill_switch(body.reason, {"actor": claims["service"]})
    else:
        await drawdown.reset_kill_switch(actor=claims["service"])
    return {"kill_switch_active": await drawdown.is_kill_switch_active()}


@router.get("/risk-events", dependencies=[Depends(agent_only)])
async def risk_events(request: Request, limit: int = Query(default=50, ge=1, le=500)):
    return await _services(request).store.get_risk_events(limit)


@router.get("/health")
async def health():
    return {"status": "ok", "service": "risk-guardian"}


def create_risk_app(
    settings: Settings,
    store: Optional[TradingStore] = None,
    tokens: Optional[ServiceTokenManager] = None,
) -> FastAPI:
    """Build the risk gate app.

    Args:
        settings: Loaded settings.
        store: Store override, mainly for tests.
        tokens: Token manager override. Built from settings.auth otherwise.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting risk gate service...")
        app.state.risk = build_risk_services(settings, store)
        try:
            yield
        finally:
            logger.info("Shutting down risk gate service...")

    app = FastAPI(title="risk-guardian-service", version=settings.system.version, lifespan=lifespan)
    app.state.tokens = tokens or ServiceTokenManager(
        settings.auth.jwt_secret.get_secret_value(),
        settings.auth.token_ttl_seconds,
    )
    app.include_router(router)
    return app
