"""Clients for calling the risk and execution services and listing markets."""

from src.clients.market_feed import MarketFeed, market_from_payload
from src.clients.service_clients import ExecutionClient, RiskGateClient, ServiceClient

__all__ = ["ExecutionClient", "MarketFeed", "RiskGateClient", "ServiceClient", "market_from_payload"]
