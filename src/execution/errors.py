"""Exceptions raised during order execution.

Each error says whether another attempt could succeed. The retry runner
reads the retryable flag; errors outside this hierarchy are treated as
transient transport faults.
"""


class ExecutionError(Exception):
    """Base class for execution failures."""

    retryable = False


class WalletError(ExecutionError):
    """Signer unavailable, e.g. used after destroy()."""


class InsufficientBalanceError(ExecutionError):
    """Pre-flight balance check failed."""

    def __init__(self, asset: str, balance: float, required: float):
        super().__init__(f"Insufficient {asset} balance: have {balance}, need {required}")
        self.asset = asset
        self.balance = balance
        self.required = required


class SlippageExceededError(ExecutionError):
    """Expected slippage is above the caller's ceiling."""

    def __init__(self, slippage_bps: float, max_slippage_bps: float):
        super().__init__(f"Slippage {slippage_bps:.0f}bps exceeds max {max_slippage_bps}bps")
        self.slippage_bps = slippage_bps
        self.max_slippage_bps = max_slippage_bps


class OrderSubmissionError(ExecutionError):
    """The venue refused or failed to accept the order."""

    retryable = True

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransactionRevertedError(ExecutionError):
    """Settlement transaction was mined with status 0."""

    retryable = True

    def __init__(self, tx_hash: str, receipt: dict | None = None):
        super().__init__(f"Transaction reverted: {tx_hash}")
        self.tx_hash = tx_hash
        self.receipt = receipt or {}


class ConfirmationTimeoutError(ExecutionError):
    """Settlement transaction did not reach the confirmation count in time."""

    retryable = True

    def __init__(self, tx_hash: str, timeout_seconds: float):
        super().__init__(f"Transaction not confirmed within {timeout_seconds:g}s: {tx_hash}")
        self.tx_hash = tx_hash
        self.timeout_seconds = timeout_seconds
