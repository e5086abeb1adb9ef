"""Service-to-service authentication."""

from src.auth.service_tokens import ServiceTokenManager, TokenValidationError

__all__ = ["ServiceTokenManager", "TokenValidationError"]
