# src/api/agent_app.py
"""HTTP control surface of the trading agent."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request

from src.api.deps import require_service
from src.api.services import AgentServices, build_agent_services
from src.auth.service_tokens import ServiceTokenManager
from src.config.constants import ADMIN_SERVICE
from src.config.settings import Settings
from src.consensus.strategy import Strategy
from src.orchestrator.models import CycleResult


logger = logging.getLogger(__name__)

router = APIRouter(tags=["agent"])

admin_only = require_service(ADMIN_SERVICE)


def _services(request: Request) -> AgentServices:
    return request.app.state.agent


def _cycle_payload(result: CycleResult) -> dict:
    return {
        "status": result.status.value,
        "reason": result.reason,
        "trades_executed": result.trades_executed,
        "started_at": result.started_at.isoformat(),
        "finished_at": result.finished_at.isoformat() if result.finished_at else None,
        "markets": [asdict(m) for m in result.markets],
    }


@router.post("/trigger-cycle", dependencies=[Depends(admin_only)])
async def trigger_cycle(request: Request):
    agent = _services(request)
    try:
        markets = await agent.feed.fetch_active_markets()
        result = await agent.cycle.run_cycle(markets)
    except Exception as e:
        logger.exception(f"Triggered cycle failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return _cycle_payload(result)


@router.post("/self-reflect", dependencies=[Depends(admin_only)])
async def self_reflect(request: Request):
    try:
        weights = await _services(request).cycle.run_reflection()
    except Exception as e:
        logger.exception(f"Self-reflection failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"weights": weights}


@router.post("/toggle", dependencies=[Depends(admin_only)])
async def toggle(request: Request):
    return {"active": _services(request).cycle.toggle()}


@router.get("/status")
async def status(request: Request):
    cycle = _services(request).cycle
    return {
        "active": cycle.enabled,
        "simulation": request.app.state.simulation,
        "state": cycle.state.value,
        "in_flight": cycle.in_flight,
    }


@router.get("/health")
async def health():
    return {"status": "ok", "service": "openclaw-agent"}


def create_agent_app(
    settings: Settings,
    services: Optional[AgentServices] = None,
    tokens: Optional[ServiceTokenManager] = None,
    strategies: Optional[list[Strategy]] = None,
    run_loop: bool = True,
) -> FastAPI:
    """Build the agent app.

    With run_loop the scheduler runs in the background for the lifespan of
    the app; the admin routes drive the same TradingCycle, so a trigger that
    lands while a scheduled cycle is running comes back skipped.

    Args:
        settings: Loaded settings.
        services: Pre-wired components, mainly for tests.
        tokens: Token manager override. Built from settings.auth otherwise.
        strategies: Strategies for the cycle when services are built here.
        run_loop: Start the periodic cycle on startup.
    """
    token_manager = tokens or ServiceTokenManager(
        settings.auth.jwt_secret.get_secret_value(),
        settings.auth.token_ttl_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting agent service...")
        agent = services or build_agent_services(settings, token_manager, strategies or [])
        app.state.agent = agent

        loop_task = None
        if run_loop:
            loop_task = asyncio.create_task(
                agent.cycle.run_forever(
                    agent.feed.fetch_active_markets,
                    settings.orchestrator.cycle_interval_seconds,
                )
            )
        try:
            yield
        finally:
            logger.info("Shutting down agent service...")
            agent.cycle.stop()
            if loop_task is not None:
                loop_task.cancel()
                with suppress(asyncio.CancelledError):
                    await loop_task
            await agent.close()

    app = FastAPI(title="openclaw-agent-service", version=settings.system.version, lifespan=lifespan)
    app.state.tokens = token_manager
    app.state.simulation = settings.system.simulation
    app.include_router(router)
    return app
