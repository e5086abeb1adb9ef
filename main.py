# main.py
"""Main entry point for the consensus trading services."""
import argparse
import os
import sys
import logging
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from src.api import create_agent_app, create_execution_app, create_risk_app
from src.auth import ServiceTokenManager
from src.config.constants import ConfigurationError
from src.config.settings import Settings
from src.execution import PolygonClient, WalletService


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

ROLES = ("risk", "executor", "agent")


def validate_env_vars(mode: str) -> None:
    """Validate required environment variables are set.

    SERVICE_JWT_SECRET is always required. Live mode also needs a wallet
    key, either WALLET_PRIVATE_KEY or a WALLET_SECRET_FILE.

    Raises:
        SystemExit: If any required env var is missing.
    """
    missing = []
    if not os.getenv("SERVICE_JWT_SECRET"):
        missing.append("SERVICE_JWT_SECRET")
    if mode == "live" and not (os.getenv("WALLET_PRIVATE_KEY") or os.getenv("WALLET_SECRET_FILE")):
        missing.append("WALLET_PRIVATE_KEY (or WALLET_SECRET_FILE)")

    if missing:
        logger.error(f"Missing required environment variables: {', '.join(missing)}")
        logger.error("Please check your .env file")
        sys.exit(1)


def create_data_dirs(settings: Settings) -> None:
    """Create required data directories if they don't exist."""
    Path(settings.storage.data_dir).mkdir(parents=True, exist_ok=True)
    logger.info("Data directories verified")


def print_startup_banner(settings: Settings, role: str) -> None:
    """Print system startup banner."""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.system.name} ({role})")
    logger.info(f"Mode: {settings.system.mode}")
    logger.info(f"Version: {settings.system.version}")
    logger.info("=" * 60)


def load_and_validate_config(config_path: Path = Path("config/settings.yaml")) -> Settings:
    """Load and validate configuration.

    Returns:
        Settings object loaded from YAML.

    Raises:
        SystemExit: If config file missing, env vars invalid, or YAML parsing fails.
    """
    load_dotenv()
    logger.info("✓ Loaded environment variables")

    if not config_path.exists():
        logger.error(f"{config_path} not found")
        sys.exit(1)

    try:
        settings = Settings.from_yaml(config_path)
        logger.info(f"✓ Settings loaded from {config_path}")
    except Exception as e:
        logger.error(f"Failed to parse {config_path}: {e}")
        sys.exit(1)

    validate_env_vars(settings.system.mode)
    logger.info("✓ Environment variables validated")

    create_data_dirs(settings)

    return settings


def load_wallet(settings: Settings) -> WalletService:
    """Load the signer before serving so a missing key aborts startup.

    Raises:
        ConfigurationError: No usable key in live mode.
    """
    simulation = settings.system.simulation
    chain = None if simulation else PolygonClient(settings.chain.rpc_url)
    wallet = WalletService.load(settings.wallet.resolve_private_key(), simulation=simulation, chain=chain)
    logger.info(f"✓ Wallet loaded ({wallet.address})")
    return wallet


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Consensus trading services")
    parser.add_argument("role", choices=ROLES, help="Service to run")
    parser.add_argument("--config", type=Path, default=Path("config/settings.yaml"))
    args = parser.parse_args(argv)

    settings = load_and_validate_config(args.config)
    print_startup_banner(settings, args.role)

    try:
        tokens = ServiceTokenManager(
            settings.auth.jwt_secret.get_secret_value(),
            settings.auth.token_ttl_seconds,
        )
        if args.role == "risk":
            app = create_risk_app(settings, tokens=tokens)
            uvicorn.run(app, host=settings.services.host, port=settings.services.risk_port)
        elif args.role == "executor":
            wallet = load_wallet(settings)
            app = create_execution_app(settings, wallet=wallet, tokens=tokens)
            uvicorn.run(app, host=settings.services.host, port=settings.services.executor_port)
        else:
            app = create_agent_app(settings, tokens=tokens, strategies=[])
            uvicorn.run(app, host=settings.services.host, port=settings.services.agent_port)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutdown requested")


if __name__ == "__main__":
    main()
