# src/execution/polygon_client.py
"""Polygon JSON-RPC client for balances, gas and confirmations."""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from src.config.constants import USDC_ADDRESS, USDC_DECIMALS
from src.execution.errors import ConfirmationTimeoutError, TransactionRevertedError


logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
]

GAS_FALLBACK = 300_000
GAS_BUFFER = 1.2


class PolygonClient:
    """Async wrapper over web3 for the calls the executor needs.

    Attributes:
        w3: Underlying AsyncWeb3 instance.
        usdc: USDC ERC20 contract.
    """

    def __init__(
        self,
        rpc_url: str,
        w3: Optional[AsyncWeb3] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize PolygonClient.

        Args:
            rpc_url: Polygon JSON-RPC endpoint.
            w3: Prebuilt AsyncWeb3, mainly for tests.
            sleep: Awaitable used between confirmation polls.
            clock: Monotonic clock used for the confirmation deadline.
        """
        self.rpc_url = rpc_url
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.usdc = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(USDC_ADDRESS),
            abi=ERC20_ABI,
        )
        self._sleep = sleep
        self._clock = clock

    async def get_balance(self, address: str) -> int:
        """Return the native MATIC balance in wei."""
        return int(await self.w3.eth.get_balance(AsyncWeb3.to_checksum_address(address)))

    async def get_usdc_balance(self, address: str) -> float:
        """Return the USDC balance in whole units."""
        raw = await self.usdc.functions.balanceOf(AsyncWeb3.to_checksum_address(address)).call()
        return raw / 10**USDC_DECIMALS

    async def get_usdc_allowance(self, owner: str, spender: str) -> float:
        raw = await self.usdc.functions.allowance(
            AsyncWeb3.to_checksum_address(owner),
            AsyncWeb3.to_checksum_address(spender),
        ).call()
        return raw / 10**USDC_DECIMALS

    async def estimate_gas(self, tx: dict) -> int:
        """Estimate gas with a 20% buffer, falling back to a static 300k."""
        try:
            estimate = int(await self.w3.eth.estimate_gas(tx))
        except Exception as e:
            logger.warning(f"Gas estimation failed, using fallback: {e}")
            return GAS_FALLBACK
        return int(estimate * GAS_BUFFER)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        """Return the receipt, or None while the transaction is unmined."""
        try:
            receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return dict(receipt)

    async def wait_for_confirmation(
        self,
        tx_hash: str,
        confirmations: int = 2,
        timeout: float = 60.0,
        poll_interval: float = 2.0,
    ) -> dict:
        """Poll until tx_hash has the required confirmations.

        Args:
            tx_hash: Settlement transaction hash.
            confirmations: Blocks required, counting the inclusion block.
            timeout: Seconds before giving up.
            poll_interval: Seconds between polls.

        Returns:
            The mined receipt.

        Raises:
            TransactionRevertedError: Receipt status is 0.
            ConfirmationTimeoutError: Not confirmed before the deadline.
        """
        deadline = self._clock() + timeout

        while True:
            receipt = await self.get_transaction_receipt(tx_hash)
            if receipt is not None:
                if receipt.get("status") == 0:
                    raise TransactionRevertedError(tx_hash, receipt)

                block_number = await self.w3.eth.block_number
                depth = block_number - receipt["blockNumber"] + 1
                if depth >= confirmations:
                    logger.info(f"Transaction {tx_hash} confirmed ({depth} blocks)")
                    return receipt

            if self._clock() >= deadline:
                raise ConfirmationTimeoutError(tx_hash, timeout)
            await self._sleep(poll_interval)

    async def close(self) -> None:
        disconnect = getattr(self.w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
