# src/config/settings.py
import json
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.config.constants import POLYGON_CHAIN_ID
from src.consensus.settings import ConsensusSettings
from src.execution.settings import ExecutionSettings
from src.orchestrator.settings import OrchestratorSettings
from src.risk.settings import MonteCarloSettings, RiskSettings


class SystemConfig(BaseModel):
    name: str = "Consensus Trader"
    version: str = "1.0.0"
    mode: Literal["simulation", "live"] = "simulation"

    @property
    def simulation(self) -> bool:
        return self.mode == "simulation"


class StorageSettings(BaseModel):
    data_dir: str = "data/store"


class ServicesConfig(BaseModel):
    host: str = "0.0.0.0"
    agent_port: int = Field(default=3001, gt=0, le=65535)
    risk_port: int = Field(default=3002, gt=0, le=65535)
    executor_port: int = Field(default=3003, gt=0, le=65535)
    risk_url: str = "http://localhost:3002"
    executor_url: str = "http://localhost:3003"
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    # Covers every confirmation wait and backoff sleep of a fully retried order
    execute_timeout_seconds: float = Field(default=300.0, gt=0)


class ChainConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="POLYGON_")

    rpc_url: str = "https://polygon-rpc.com"
    chain_id: int = POLYGON_CHAIN_ID


class WalletConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WALLET_")

    private_key: SecretStr = SecretStr("")
    secret_file: Optional[Path] = None

    def resolve_private_key(self) -> Optional[str]:
        """Return the signing key from env, else from the JSON secret file.

        The secret file holds {"privateKey": "0x..."}.
        """
        key = self.private_key.get_secret_value()
        if key:
            return key

        if self.secret_file is not None and self.secret_file.exists():
            with open(self.secret_file) as f:
                data = json.load(f)
            return data.get("privateKey") or data.get("private_key")

        return None


class AuthConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SERVICE_")

    jwt_secret: SecretStr = SecretStr("")
    token_ttl_seconds: int = Field(default=300, gt=0)


class VenueConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CLOB_")

    api_url: str = "https://clob.polymarket.com"
    gamma_url: str = "https://gamma-api.polymarket.com"
    timeout_seconds: float = 10.0
    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")
    api_passphrase: SecretStr = SecretStr("")


class Settings(BaseModel):
    system: SystemConfig = Field(default_factory=SystemConfig)
    consensus: ConsensusSettings = Field(default_factory=ConsensusSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    monte_carlo: MonteCarloSettings = Field(default_factory=MonteCarloSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    services: ServicesConfig = Field(default_factory=ServicesConfig)
    chain: ChainConfig = Field(default_factory=ChainConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    venue: VenueConfig = Field(default_factory=VenueConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file with env var overrides."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(
            **data,
            chain=ChainConfig(),
            wallet=WalletConfig(),
            auth=AuthConfig(),
            venue=VenueConfig(),
        )
