# src/config/constants.py
"""Network addresses and service identities shared across services."""

USDC_ADDRESS = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
USDC_DECIMALS = 6
CTF_EXCHANGE_ADDRESS = "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"
EXCHANGE_DOMAIN_NAME = "Polymarket CTF Exchange"
EXCHANGE_DOMAIN_VERSION = "1"
POLYGON_CHAIN_ID = 137

# Well-known development key, only ever used in simulation mode
SIMULATION_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

AGENT_SERVICE = "openclaw-agent-service"
RISK_SERVICE = "risk-guardian-service"
EXECUTOR_SERVICE = "trade-executor-service"
ADMIN_SERVICE = "admin"


class ConfigurationError(Exception):
    """Raised at startup when required configuration is missing."""
