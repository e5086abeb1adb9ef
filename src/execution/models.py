# src/execution/models.py
"""Data models for the execution system."""
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field

from src.models.records import OrderType, TradeStatus
from src.models.trading import Direction, Side


class TradeExecutionRequest(BaseModel):
    """An order the risk gate has approved."""

    market_id: str
    token_id: str
    side: Side
    direction: Direction
    size_usd: float = Field(gt=0)
    order_type: OrderType = OrderType.MARKET
    limit_price: Optional[float] = Field(default=None, gt=0.0, lt=1.0)
    max_slippage_bps: int = Field(default=100, ge=0, le=10000)
    strategy_id: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""


@dataclass
class TradeExecutionResult:
    """Outcome of execute_trade.

    Attributes:
        success: True when the trade reached FILLED.
        trade_id: Persisted trade record id.
        status: Final status of the trade record.
        tx_hash: Settlement transaction hash (synthetic in simulation).
        filled_price: Average fill price.
        filled_size_usd: Notional filled.
        slippage: Slippage in basis points.
        gas_used: Gas consumed by settlement.
        error_message: Error details when the trade failed.
        retry_count: Retries performed.
    """

    success: bool
    trade_id: str
    status: TradeStatus
    tx_hash: Optional[str] = None
    filled_price: Optional[float] = None
    filled_size_usd: Optional[float] = None
    slippage: Optional[float] = None
    gas_used: Optional[int] = None
    error_message: Optional[str] = None
    retry_count: int = 0


@dataclass
class OrderPayload:
    """Order fields covered by the EIP-712 signature.

    Amounts and prices are scaled by 1e6 to match USDC decimals.
    """

    token_id: int
    side: int
    size: int
    price: int
    nonce: int
    expiration: int

    def to_message(self) -> dict:
        return {
            "tokenID": self.token_id,
            "side": self.side,
            "size": self.size,
            "price": self.price,
            "nonce": self.nonce,
            "expiration": self.expiration,
        }


@dataclass
class FillReport:
    """Settlement details of one successful attempt."""

    tx_hash: str
    filled_price: float
    filled_size_usd: float
    slippage: float
    gas_used: int = 0


@dataclass
class WalletInfo:
    """Public view of the execution wallet. Never carries key material."""

    address: str
    matic_balance: float
    usdc_balance: float
    simulation: bool
