"""Tests for ServiceTokenManager."""

import pytest

from src.auth.service_tokens import ServiceTokenManager, TokenValidationError
from src.config.constants import ConfigurationError


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestServiceTokenManager:
    """Tests for issuing and verifying service tokens."""

    def test_issue_and_verify(self):
        clock = FakeClock()
        tokens = ServiceTokenManager("secret", clock=clock)

        claims = tokens.verify(tokens.issue("risk-guardian-service"))

        assert claims["service"] == "risk-guardian-service"
        assert claims["iat"] == 1_700_000_000
        assert claims["exp"] == 1_700_000_300

    def test_empty_secret_rejected(self):
        with pytest.raises(ConfigurationError):
            ServiceTokenManager("")

    def test_expired_token(self):
        clock = FakeClock()
        tokens = ServiceTokenManager("secret", ttl_seconds=60, clock=clock)
        token = tokens.issue("agent")

        clock.now += 61

        with pytest.raises(TokenValidationError, match="expired"):
            tokens.verify(token)

    def test_token_valid_until_exp(self):
        clock = FakeClock()
        tokens = ServiceTokenManager("secret", ttl_seconds=60, clock=clock)
        token = tokens.issue("agent")

        clock.now += 60

        assert tokens.verify(token)["service"] == "agent"

    def test_wrong_secret(self):
        token = ServiceTokenManager("one").issue("agent")

        with pytest.raises(TokenValidationError, match="signature"):
            ServiceTokenManager("two").verify(token)

    def test_tampered_payload(self):
        tokens = ServiceTokenManager("secret")
        header, _, signature = tokens.issue("agent").split(".")
        forged_payload = tokens.issue("admin").split(".")[1]

        with pytest.raises(TokenValidationError):
            tokens.verify(f"{header}.{forged_payload}.{signature}")

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "!!.@@.##"])
    def test_malformed_tokens(self, token):
        with pytest.raises(TokenValidationError):
            ServiceTokenManager("secret").verify(token)
