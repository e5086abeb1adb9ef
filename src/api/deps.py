# src/api/deps.py
"""FastAPI dependencies for service-token authentication."""
import logging
from typing import Any, Callable, Optional

from fastapi import Header, HTTPException, Request

from src.auth.service_tokens import ServiceTokenManager, TokenValidationError


logger = logging.getLogger(__name__)


def require_service(*allowed: str) -> Callable[..., Any]:
    """Build a dependency accepting only the listed caller services.

    Responds 401 for a missing, malformed, forged or expired bearer token
    and 403 for a valid token whose service is not in the allow-list.
    """
    allowed_services = frozenset(allowed)

    async def dependency(
        request: Request,
        authorization: Optional[str] = Header(default=None),
    ) -> dict[str, Any]:
        if not authorization or not authorization.lower().startswith("bearer "):
            raise HTTPException(status_code=401, detail="Missing bearer token")

        tokens: ServiceTokenManager = request.app.state.tokens
        try:
            claims = tokens.verify(authorization[7:].strip())
        except TokenValidationError as e:
            raise HTTPException(status_code=401, detail=f"Invalid token: {e}")

        if claims["service"] not in allowed_services:
            logger.warning(f"Service {claims['service']} denied access to {request.url.path}")
            raise HTTPException(status_code=403, detail=f"Service {claims['service']} not allowed")

        return claims

    return dependency
