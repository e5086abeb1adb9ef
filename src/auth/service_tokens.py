# src/auth/service_tokens.py
"""Short-lived HMAC-SHA256 bearer tokens for service-to-service calls."""
import base64
import hashlib
import hmac
import json
import time
from typing import Any, Callable

from src.config.constants import ConfigurationError


class TokenValidationError(Exception):
    """Token is missing, malformed, badly signed or expired."""


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("utf-8")


def _b64url_decode(raw: str) -> bytes:
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


class ServiceTokenManager:
    """Issues and verifies JWTs carrying a `service` claim.

    Attributes:
        ttl_seconds: Token lifetime, 5 minutes by default.
    """

    HEADER = {"alg": "HS256", "typ": "JWT"}

    def __init__(self, secret: str, ttl_seconds: int = 300, clock: Callable[[], float] = time.time):
        if not secret:
            raise ConfigurationError("Service JWT secret is required")
        self._secret = secret.encode("utf-8")
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _sign(self, signing_input: bytes) -> bytes:
        return hmac.new(self._secret, signing_input, hashlib.sha256).digest()

    def issue(self, service: str) -> str:
        """Return a signed token identifying the calling service."""
        now = int(self._clock())
        claims = {"service": service, "iat": now, "exp": now + self.ttl_seconds}
        segments = [
            _b64url_encode(json.dumps(self.HEADER, separators=(",", ":")).encode("utf-8")),
            _b64url_encode(json.dumps(claims, separators=(",", ":")).encode("utf-8")),
        ]
        signature = self._sign(".".join(segments).encode("utf-8"))
        segments.append(_b64url_encode(signature))
        return ".".join(segments)

    def verify(self, token: str) -> dict[str, Any]:
        """Validate a token and return its claims.

        Raises:
            TokenValidationError: On any structural, signature or expiry failure.
        """
        if not token:
            raise TokenValidationError("missing token")

        parts = token.split(".")
        if len(parts) != 3:
            raise TokenValidationError("invalid token structure")

        header_raw, payload_raw, signature_raw = parts
        try:
            actual = _b64url_decode(signature_raw)
            claims = json.loads(_b64url_decode(payload_raw).decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            raise TokenValidationError("malformed token") from e

        expected = self._sign(f"{header_raw}.{payload_raw}".encode("utf-8"))
        if not hmac.compare_digest(expected, actual):
            raise TokenValidationError("signature mismatch")

        if not isinstance(claims, dict) or not claims.get("service"):
            raise TokenValidationError("missing service claim")
        if "exp" not in claims or int(claims["exp"]) < int(self._clock()):
            raise TokenValidationError("token expired")

        return claims
