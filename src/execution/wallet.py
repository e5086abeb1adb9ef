# src/execution/wallet.py
"""In-memory signer for venue orders."""
import logging
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_typed_data

from src.config.constants import (
    CTF_EXCHANGE_ADDRESS,
    EXCHANGE_DOMAIN_NAME,
    EXCHANGE_DOMAIN_VERSION,
    POLYGON_CHAIN_ID,
    SIMULATION_PRIVATE_KEY,
    ConfigurationError,
)
from src.execution.errors import WalletError
from src.execution.models import OrderPayload
from src.execution.polygon_client import PolygonClient


logger = logging.getLogger(__name__)

ORDER_TYPES = {
    "Order": [
        {"name": "tokenID", "type": "uint256"},
        {"name": "side", "type": "uint8"},
        {"name": "size", "type": "uint256"},
        {"name": "price", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "expiration", "type": "uint256"},
    ]
}


class WalletService:
    """Holds the signing account for the life of the service.

    The key lives only inside the eth_account LocalAccount. Nothing here
    returns, logs or serializes it; callers see the address alone.
    destroy() drops the account, after which signing raises WalletError.
    """

    def __init__(self, account, simulation: bool = False, chain: Optional[PolygonClient] = None):
        self._account = account
        self._address = account.address
        self.simulation = simulation
        self._chain = chain

    @classmethod
    def load(
        cls,
        private_key: Optional[str],
        simulation: bool = False,
        chain: Optional[PolygonClient] = None,
    ) -> "WalletService":
        """Build the signer from a resolved private key.

        Args:
            private_key: Hex key from env or the secrets file.
            simulation: Use the development key when no key is configured.
            chain: RPC client for balance reads.

        Raises:
            ConfigurationError: No key in live mode, or the key is malformed.
        """
        if not private_key:
            if not simulation:
                raise ConfigurationError("Wallet private key is required in live mode")
            private_key = SIMULATION_PRIVATE_KEY

        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError("Wallet private key is malformed") from e

        logger.info(f"Wallet loaded: {account.address}")
        return cls(account, simulation=simulation, chain=chain)

    @property
    def address(self) -> str:
        return self._address

    @property
    def chain(self) -> Optional[PolygonClient]:
        return self._chain

    @property
    def active(self) -> bool:
        return self._account is not None

    def sign_order(self, order: OrderPayload, chain_id: int = POLYGON_CHAIN_ID) -> str:
        """EIP-712 sign an order and return the 0x-prefixed signature."""
        if self._account is None:
            raise WalletError("Wallet has been destroyed")

        domain = {
            "name": EXCHANGE_DOMAIN_NAME,
            "version": EXCHANGE_DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": CTF_EXCHANGE_ADDRESS,
        }
        signable = encode_typed_data(
            domain_data=domain,
            message_types=ORDER_TYPES,
            message_data=order.to_message(),
        )
        signed = self._account.sign_message(signable)
        return "0x" + bytes(signed.signature).hex()

    async def get_balance(self) -> int:
        """Native gas balance in wei, 0 without a chain client."""
        if self._chain is None:
            return 0
        return await self._chain.get_balance(self._address)

    async def get_usdc_balance(self) -> float:
        if self._chain is None:
            return 0.0
        return await self._chain.get_usdc_balance(self._address)

    def destroy(self) -> None:
        self._account = None
        logger.info(f"Wallet signer destroyed: {self._address}")

    def __repr__(self) -> str:
        return f"WalletService(address={self._address!r}, simulation={self.simulation})"
