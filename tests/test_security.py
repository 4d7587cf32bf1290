"""
Tests for bearer token issuance and verification
"""

import jwt
import pytest

from investment_platform.config import PlatformConfig
from investment_platform.errors import NotAuthorizedError
from investment_platform.security import create_access_token, decode_access_token


@pytest.fixture
def config():
    return PlatformConfig(jwt_secret="unit-test-secret-0123456789abcdef0123", storage_backend="memory")


class TestTokens:

    def test_round_trip(self, config):
        token = create_access_token("user-1", "admin", config)
        payload = decode_access_token(token, config)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "admin"
        assert payload["exp"] > payload["iat"]

    def test_expired_token(self, config):
        expired = config.model_copy(update={"jwt_expiry_hours": -1})
        token = create_access_token("user-1", "user", expired)

        with pytest.raises(NotAuthorizedError, match="Token expired"):
            decode_access_token(token, config)

    def test_wrong_secret(self, config):
        other = config.model_copy(update={"jwt_secret": "another-secret-0123456789abcdef01234"})
        token = create_access_token("user-1", "user", other)

        with pytest.raises(NotAuthorizedError, match="token failed"):
            decode_access_token(token, config)

    def test_garbage_token(self, config):
        with pytest.raises(NotAuthorizedError):
            decode_access_token("not-a-jwt", config)

    def test_token_without_subject(self, config):
        token = jwt.encode({"role": "user"}, config.jwt_secret, algorithm="HS256")
        with pytest.raises(NotAuthorizedError):
            decode_access_token(token, config)
