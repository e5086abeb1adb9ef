# src/api/services.py
"""Component containers each service process builds at startup."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from src.auth.service_tokens import ServiceTokenManager
from src.clients.market_feed import MarketFeed
from src.clients.service_clients import ExecutionClient, RiskGateClient
from src.config.constants import AGENT_SERVICE
from src.config.settings import Settings
from src.consensus.meta_allocator import MetaAllocator
from src.consensus.strategy import Strategy
from src.execution.clob_client import ClobClient
from src.execution.order_executor import OrderExecutor
from src.execution.polygon_client import PolygonClient
from src.execution.wallet import WalletService
from src.orchestrator.trading_cycle import TradingCycle
from src.portfolio.ledger import PortfolioLedger
from src.risk.drawdown_monitor import DrawdownMonitor
from src.risk.exposure_tracker import ExposureTracker
from src.risk.monte_carlo import MonteCarloSimulator
from src.risk.position_sizer import PositionSizer
from src.risk.volatility_adjuster import VolatilityAdjuster
from src.storage.base import TradingStore
from src.storage.json_store import JsonFileStore


logger = logging.getLogger(__name__)


@dataclass
class RiskServices:
    store: TradingStore
    exposure: ExposureTracker
    drawdown: DrawdownMonitor
    volatility: VolatilityAdjuster
    monte_carlo: MonteCarloSimulator
    sizer: PositionSizer


@dataclass
class ExecutionServices:
    store: TradingStore
    ledger: PortfolioLedger
    wallet: WalletService
    executor: OrderExecutor


@dataclass
class AgentServices:
    store: TradingStore
    allocator: MetaAllocator
    cycle: TradingCycle
    risk_client: RiskGateClient
    execution_client: ExecutionClient
    feed: MarketFeed

    async def close(self) -> None:
        await self.feed.close()
        await self.risk_client.close()
        await self.execution_client.close()


def build_store(settings: Settings) -> TradingStore:
    return JsonFileStore(Path(settings.storage.data_dir))


def build_risk_services(settings: Settings, store: Optional[TradingStore] = None) -> RiskServices:
    store = store or build_store(settings)
    exposure = ExposureTracker(store)
    drawdown = DrawdownMonitor(store, settings.risk)
    volatility = VolatilityAdjuster(store, settings.risk)
    monte_carlo = MonteCarloSimulator(store, settings.monte_carlo)
    sizer = PositionSizer(store, exposure, drawdown, volatility, settings.risk)
    logger.info("✓ Risk gate initialized")
    return RiskServices(
        store=store,
        exposure=exposure,
        drawdown=drawdown,
        volatility=volatility,
        monte_carlo=monte_carlo,
        sizer=sizer,
    )


def build_execution_services(
    settings: Settings,
    store: Optional[TradingStore] = None,
    wallet: Optional[WalletService] = None,
) -> ExecutionServices:
    """Wire the executor. Raises ConfigurationError when the wallet key is missing in live mode."""
    store = store or build_store(settings)
    simulation = settings.system.simulation

    if wallet is None:
        chain = None if simulation else PolygonClient(settings.chain.rpc_url)
        wallet = WalletService.load(settings.wallet.resolve_private_key(), simulation=simulation, chain=chain)
    chain = wallet.chain

    clob = ClobClient(
        settings.venue.api_url,
        timeout=settings.venue.timeout_seconds,
        default_price=settings.execution.default_market_price,
        api_key=settings.venue.api_key.get_secret_value(),
        api_secret=settings.venue.api_secret.get_secret_value(),
        api_passphrase=settings.venue.api_passphrase.get_secret_value(),
    )
    ledger = PortfolioLedger(
        store,
        DrawdownMonitor(store, settings.risk),
        initial_capital=settings.risk.default_total_capital,
    )
    executor = OrderExecutor(
        store,
        wallet,
        clob=clob,
        chain=chain,
        ledger=ledger,
        settings=settings.execution,
        simulation=simulation,
        chain_id=settings.chain.chain_id,
    )
    logger.info(f"✓ Order executor initialized ({settings.system.mode} mode, wallet {wallet.address})")
    return ExecutionServices(store=store, ledger=ledger, wallet=wallet, executor=executor)


def build_agent_services(
    settings: Settings,
    tokens: ServiceTokenManager,
    strategies: list[Strategy],
    store: Optional[TradingStore] = None,
) -> AgentServices:
    """Wire the agent's trading cycle against the risk and execution services."""
    store = store or build_store(settings)
    allocator = MetaAllocator(store, settings.consensus)
    ledger = PortfolioLedger(
        store,
        DrawdownMonitor(store, settings.risk),
        initial_capital=settings.risk.default_total_capital,
    )
    logger.info("✓ Meta-allocator initialized")

    services = settings.services
    risk_client = RiskGateClient(services.risk_url, tokens, AGENT_SERVICE, services.request_timeout_seconds)
    execution_client = ExecutionClient(
        services.executor_url,
        tokens,
        AGENT_SERVICE,
        services.request_timeout_seconds,
        execute_timeout=services.execute_timeout_seconds,
    )
    logger.info(f"✓ Service clients initialized (risk={services.risk_url}, executor={services.executor_url})")

    if not strategies:
        logger.warning("No strategies registered - cycles will record no-trade decisions only")

    cycle = TradingCycle(
        strategies=strategies,
        allocator=allocator,
        ledger=ledger,
        risk_gate=risk_client,
        executor=execution_client,
        store=store,
        settings=settings.orchestrator,
        max_slippage_bps=settings.execution.max_slippage_bps,
    )
    feed = MarketFeed(settings.venue.gamma_url, limit=settings.orchestrator.max_markets_per_cycle)
    logger.info("✓ TradingCycle initialized")
    return AgentServices(
        store=store,
        allocator=allocator,
        cycle=cycle,
        risk_client=risk_client,
        execution_client=execution_client,
        feed=feed,
    )
