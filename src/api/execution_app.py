# src/api/execution_app.py
"""HTTP surface of the order execution service."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request

from src.api.deps import require_service
from src.api.services import ExecutionServices, build_execution_services
from src.auth.service_tokens import ServiceTokenManager
from src.config.constants import AGENT_SERVICE, RISK_SERVICE
from src.config.settings import Settings
from src.execution.models import TradeExecutionRequest
from src.execution.wallet import WalletService
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)

router = APIRouter(tags=["execution"])

trusted_callers = require_service(RISK_SERVICE, AGENT_SERVICE)


def _services(request: Request) -> ExecutionServices:
    return request.app.state.execution


@router.post("/execute-trade", dependencies=[Depends(trusted_callers)])
async def execute_trade(body: TradeExecutionRequest, request: Request):
    try:
        return await _services(request).executor.execute_trade(body)
    except Exception as e:
        logger.exception(f"Trade execution crashed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/trade/{trade_id}", dependencies=[Depends(trusted_callers)])
async def get_trade(trade_id: str, request: Request):
    trade = await _services(request).executor.get_trade(trade_id)
    if trade is None:
        raise HTTPException(status_code=404, detail="Trade not found")
    return trade


@router.post("/cancel/{trade_id}", dependencies=[Depends(trusted_callers)])
async def cancel_trade(trade_id: str, request: Request):
    cancelled = await _services(request).executor.cancel_order(trade_id)
    return {"trade_id": trade_id, "cancelled": cancelled}


@router.get("/wallet", dependencies=[Depends(trusted_callers)])
async def wallet(request: Request):
    return await _services(request).executor.get_wallet_info()


@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "service": "trade-executor",
        "simulation": _services(request).executor.simulation,
    }


def create_execution_app(
    settings: Settings,
    store: Optional[TradingStore] = None,
    wallet: Optional[WalletService] = None,
    tokens: Optional[ServiceTokenManager] = None,
) -> FastAPI:
    """Build the order execution app.

    The wallet signer lives for the lifespan of the app and is destroyed on
    shutdown together with the venue and RPC connections.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting order execution service...")
        app.state.execution = build_execution_services(settings, store, wallet)
        try:
            yield
        finally:
            logger.info("Shutting down order execution service...")
            await app.state.execution.executor.close()

    app = FastAPI(title="trade-executor-service", version=settings.system.version, lifespan=lifespan)
    app.state.tokens = tokens or ServiceTokenManager(
        settings.auth.jwt_secret.get_secret_value(),
        settings.auth.token_ttl_seconds,
    )
    app.include_router(router)
    return app
