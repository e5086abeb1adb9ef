"""HTTP services for the agent, risk gate and order executor."""

from src.api.agent_app import create_agent_app
from src.api.execution_app import create_execution_app
from src.api.risk_app import create_risk_app

__all__ = ["create_agent_app", "create_execution_app", "create_risk_app"]
