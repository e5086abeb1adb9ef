"""Risk gate that sizes or rejects a proposed trade."""

import logging
import math
import uuid

from src.models.records import RiskEvent, RiskEventType, RiskSeverity
from src.models.trading import TradeSignal
from src.risk.drawdown_monitor import DrawdownMonitor
from src.risk.exposure_tracker import ExposureTracker
from src.risk.models import (
    PortfolioRisk,
    RejectionCode,
    RiskCheckRequest,
    RiskCheckResult,
    RiskMetrics,
    RiskWarningCode,
)
from src.risk.settings import RiskSettings
from src.risk.volatility_adjuster import VolatilityAdjuster
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)


class PositionSizer:
    """Layered admission control for trades.

    Most checks reduce the size rather than short-circuit, so one response
    can carry several warnings and every rejection reason at once.

    Attributes:
        settings: Risk limits used by every check.
    """

    def __init__(
        self,
        store: TradingStore,
        exposure_tracker: ExposureTracker,
        drawdown_monitor: DrawdownMonitor,
        volatility_adjuster: VolatilityAdjuster,
        settings: RiskSettings | None = None,
    ):
        """Initialize PositionSizer.

        Args:
            store: Store used to record risk events.
            exposure_tracker: Source of per-market exposure and position count.
            drawdown_monitor: Drawdown classification and kill-switch owner.
            volatility_adjuster: Source of per-market size multipliers.
            settings: Risk limits. Defaults to RiskSettings().
        """
        self._store = store
        self._exposure = exposure_tracker
        self._drawdown = drawdown_monitor
        self._volatility = volatility_adjuster
        self.settings = settings or RiskSettings()

    async def validate_trade(self, request: RiskCheckRequest) -> RiskCheckResult:
        """Validate and size a trade.

        Performs the following checks in order:
        1. Kill switch active: reject and stop
        2. Confidence below minimum: reject (sizing continues)
        3. Cap at max_single_trade_percent of capital
        4. Cap at remaining per-market exposure room, reject if none left
        5. Daily drawdown at kill-switch level: reject and trip the kill switch
        6. Capital preservation band: multiply by capital_preservation_factor
        7. Multiply by the volatility multiplier
        8. Cap at available capital less buffer, reject if none available
        9. Reject if below the minimum trade size
        10. Reject if open positions are at the cap

        Args:
            request: Signal and portfolio snapshot to judge.

        Returns:
            RiskCheckResult. approved is True iff no rejection was added.
        """
        signal = request.signal
        portfolio = request.portfolio
        settings = self.settings
        rejections: list[str] = []
        warnings: list[str] = []

        total_capital = portfolio.total_capital
        metrics = RiskMetrics(
            trade_to_capital_ratio=signal.position_size_usd / total_capital if total_capital > 0 else 0.0,
        )

        # Check 1: Kill switch, from the snapshot or the persisted flag
        if portfolio.kill_switch_active or await self._drawdown.is_kill_switch_active():
            rejections.append(f"{RejectionCode.KILL_SWITCH_ACTIVE.value}: All trading halted")
            return await self._finish(signal, 0.0, rejections, warnings, metrics)

        # Check 2: Minimum confidence
        if signal.confidence < settings.min_confidence:
            rejections.append(
                f"{RejectionCode.CONFIDENCE_TOO_LOW.value}: "
                f"{signal.confidence:.3f} < {settings.min_confidence}"
            )

        # Check 3: Max single trade size
        max_trade_size = total_capital * settings.max_single_trade_percent
        size = min(signal.position_size_usd, max_trade_size)
        if signal.position_size_usd > max_trade_size:
            warnings.append(
                f"{RiskWarningCode.TRADE_SIZE_CAPPED.value}: "
                f"{signal.position_size_usd:.2f} -> {max_trade_size:.2f} "
                f"({settings.max_single_trade_percent * 100:g}% limit)"
            )

        # Check 4: Per-market exposure
        current_exposure = await self._exposure.get_market_exposure(signal.market_id)
        max_exposure = total_capital * settings.max_market_exposure_percent
        remaining_exposure = max_exposure - current_exposure
        if remaining_exposure <= 0:
            exposure_pct = current_exposure / total_capital * 100 if total_capital > 0 else 100.0
            rejections.append(
                f"{RejectionCode.MARKET_EXPOSURE_EXCEEDED.value}: "
                f"{exposure_pct:.1f}% >= {settings.max_market_exposure_percent * 100:g}%"
            )
        elif size > remaining_exposure:
            size = remaining_exposure
            warnings.append(
                f"{RiskWarningCode.SIZE_REDUCED_FOR_EXPOSURE.value}: "
                f"capped to {size:.2f} (remaining exposure room)"
            )

        # Check 5: Daily drawdown breach trips the kill switch
        drawdown = self._drawdown.check_drawdown(portfolio)
        metrics.daily_drawdown_ratio = drawdown.current_drawdown
        if drawdown.kill_switch:
            rejections.append(
                f"{RejectionCode.DAILY_DRAWDOWN_BREACH.value}: "
                f"{drawdown.current_drawdown * 100:.2f}% >= {settings.kill_switch_drawdown * 100:g}%"
            )
            await self._drawdown.activate_kill_switch(
                f"Kill switch activated: daily drawdown {drawdown.current_drawdown * 100:.2f}% "
                f"exceeded {settings.kill_switch_drawdown * 100:g}% limit",
                details={"drawdown": drawdown.current_drawdown},
            )

        # Check 6: Capital preservation band
        if drawdown.capital_preservation:
            size *= settings.capital_preservation_factor
            warnings.append(
                f"{RiskWarningCode.CAPITAL_PRESERVATION.value}: size reduced by "
                f"{(1 - settings.capital_preservation_factor) * 100:g}% "
                f"(drawdown >= {settings.capital_preservation_drawdown * 100:g}%)"
            )

        # Check 7: Volatility
        multiplier = await self._volatility.get_volatility_multiplier(signal.market_id)
        metrics.volatility_adjustment = multiplier
        if multiplier < 1.0:
            size *= multiplier
            warnings.append(
                f"{RiskWarningCode.VOLATILITY_ADJUSTED.value}: size multiplied by {multiplier:.3f}"
            )

        # Check 8: Available capital
        available = portfolio.available_capital
        if size > available:
            if available <= 0:
                rejections.append(f"{RejectionCode.INSUFFICIENT_CAPITAL.value}: No available capital")
            else:
                size = available * settings.capital_buffer
                warnings.append(
                    f"{RiskWarningCode.SIZE_REDUCED_FOR_CAPITAL.value}: capped to {size:.2f}"
                )

        # Check 9: Minimum trade size
        if size < settings.min_trade_usd:
            rejections.append(
                f"{RejectionCode.TRADE_TOO_SMALL.value}: "
                f"${size:.2f} < ${settings.min_trade_usd:.2f} minimum"
            )

        # Check 10: Open position cap
        open_positions = await self._exposure.count_open_positions()
        if open_positions >= settings.max_open_positions:
            rejections.append(
                f"{RejectionCode.MAX_POSITIONS_REACHED.value}: "
                f"{open_positions} >= {settings.max_open_positions}"
            )

        if total_capital > 0:
            metrics.market_exposure_ratio = (current_exposure + size) / total_capital

        return await self._finish(signal, size, rejections, warnings, metrics)

    async def _finish(
        self,
        signal: TradeSignal,
        size: float,
        rejections: list[str],
        warnings: list[str],
        metrics: RiskMetrics,
    ) -> RiskCheckResult:
        approved = not rejections
        result = RiskCheckResult(
            approved=approved,
            adjusted_size_usd=math.floor(size * 100) / 100 if approved else 0.0,
            rejection_reasons=rejections,
            warnings=warnings,
            risk_metrics=metrics,
        )

        if approved:
            logger.info(
                f"Trade APPROVED for {signal.market_id}: "
                f"{signal.position_size_usd:.2f} -> {result.adjusted_size_usd:.2f}"
            )
        else:
            logger.info(f"Trade REJECTED for {signal.market_id}: {'; '.join(rejections)}")
            await self._record_rejection(signal, rejections)

        return result

    async def _record_rejection(self, signal: TradeSignal, reasons: list[str]) -> None:
        await self._store.record_risk_event(
            RiskEvent(
                id=str(uuid.uuid4()),
                event_type=RiskEventType.SIZE_REJECT,
                severity=RiskSeverity.MEDIUM,
                message=f"Trade rejected: {'; '.join(reasons)}",
                details={
                    "market_id": signal.market_id,
                    "signal": {
                        "side": signal.side.value,
                        "confidence": signal.confidence,
                        "position_size_usd": signal.position_size_usd,
                        "strategy_id": signal.strategy_id,
                    },
                    "reasons": reasons,
                },
            )
        )

    async def get_portfolio_risk(self) -> PortfolioRisk:
        """Summarize exposures, daily P&L and drawdown state."""
        exposures = await self._exposure.get_all_exposures()
        pnl, pnl_percent = await self._drawdown.get_daily_pnl()
        open_positions = await self._exposure.count_open_positions()
        return PortfolioRisk(
            total_exposure=sum(exposures.values()),
            market_exposures=exposures,
            daily_pnl=pnl,
            daily_pnl_percent=pnl_percent,
            drawdown_state=self._drawdown.classify(abs(pnl_percent)),
            kill_switch_active=await self._drawdown.is_kill_switch_active(),
            open_positions=open_positions,
        )
