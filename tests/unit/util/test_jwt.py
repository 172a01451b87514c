"""Unit tests for JWT helpers."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt as pyjwt
import pytest

from canon.config import AuthSettings
from canon.domain.service import JWTService
from canon.domain.value import AuthProvider
from canon.util.jwt import JWTError, create_token, verify_token


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(jwt_secret="test-secret")


class TestJWT:
    def test_round_trip(self, auth_settings):
        user_id = str(uuid4())

        token = create_token(user_id, auth_settings, provider="google")
        payload = verify_token(token, auth_settings)

        assert payload.sub == user_id
        assert payload.provider == "google"

    def test_wrong_secret_rejected(self, auth_settings):
        token = create_token(str(uuid4()), auth_settings)

        with pytest.raises(JWTError):
            verify_token(token, AuthSettings(jwt_secret="other"))

    def test_expired_token_rejected(self, auth_settings):
        token = pyjwt.encode(
            {"sub": "x", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
            auth_settings.jwt_secret,
            algorithm=auth_settings.jwt_algorithm,
        )

        with pytest.raises(JWTError):
            verify_token(token, auth_settings)

    def test_missing_subject_rejected(self, auth_settings):
        token = pyjwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(days=1)},
            auth_settings.jwt_secret,
            algorithm=auth_settings.jwt_algorithm,
        )

        with pytest.raises(JWTError):
            verify_token(token, auth_settings)


class TestJWTService:
    def test_get_user_id_from_token(self, auth_settings):
        service = JWTService(auth_settings)
        user_id = uuid4()

        token = service.create_token(str(user_id), AuthProvider.LINKEDIN.value)

        assert service.get_user_id_from_token(token) == str(user_id)

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    def test_invalid_tokens_yield_none(self, auth_settings, token):
        assert JWTService(auth_settings).get_user_id_from_token(token) is None
