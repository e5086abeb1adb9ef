"""Order execution: signing, venue submission, confirmation and retry."""

from src.execution.clob_client import ClobClient
from src.execution.errors import (
    ConfirmationTimeoutError,
    ExecutionError,
    InsufficientBalanceError,
    OrderSubmissionError,
    SlippageExceededError,
    TransactionRevertedError,
    WalletError,
)
from src.execution.models import (
    FillReport,
    OrderPayload,
    TradeExecutionRequest,
    TradeExecutionResult,
    WalletInfo,
)
from src.execution.order_executor import OrderExecutor
from src.execution.polygon_client import PolygonClient
from src.execution.retry import AttemptOutcome, RetryPolicy, RetryRunner, classify_error
from src.execution.settings import ExecutionSettings
from src.execution.wallet import WalletService

__all__ = [
    "AttemptOutcome",
    "ClobClient",
    "ConfirmationTimeoutError",
    "ExecutionError",
    "ExecutionSettings",
    "FillReport",
    "InsufficientBalanceError",
    "OrderExecutor",
    "OrderPayload",
    "OrderSubmissionError",
    "PolygonClient",
    "RetryPolicy",
    "RetryRunner",
    "SlippageExceededError",
    "TradeExecutionRequest",
    "TradeExecutionResult",
    "TransactionRevertedError",
    "WalletError",
    "WalletInfo",
    "WalletService",
    "classify_error",
]
