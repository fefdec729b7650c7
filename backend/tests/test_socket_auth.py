"""
Tests for Socket.IO authentication.
"""
import pytest
from jose import jwt
from datetime import datetime, timedelta

from roomshare.core.config import settings
from roomshare.realtime.auth import authenticate_socket, extract_token


def create_test_token(user_id, expires_delta: timedelta = None, secret: str = None) -> str:
    """Create a test JWT token."""
    if expires_delta is None:
        expires_delta = timedelta(hours=1)

    payload = {
        "sub": str(user_id),
        "exp": datetime.utcnow() + expires_delta,
    }
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class TestExtractToken:

    def test_auth_object_preferred(self):
        environ = {"HTTP_AUTHORIZATION": "Bearer from-header"}
        assert extract_token({"token": "from-auth"}, environ) == "from-auth"

    def test_header_fallback(self):
        assert extract_token(None, {"HTTP_AUTHORIZATION": "Bearer abc"}) == "abc"

    def test_non_bearer_header_ignored(self):
        assert extract_token({}, {"HTTP_AUTHORIZATION": "Basic abc"}) is None

    def test_nothing(self):
        assert extract_token(None, None) is None


class TestAuthenticateSocket:

    @pytest.mark.anyio
    async def test_reject_no_token(self):
        is_auth, user_data = await authenticate_socket(auth=None, environ=None)
        assert is_auth is False
        assert user_data is None

    @pytest.mark.anyio
    async def test_reject_invalid_token(self):
        is_auth, _ = await authenticate_socket(auth={"token": "not-a-jwt"})
        assert is_auth is False

    @pytest.mark.anyio
    async def test_reject_expired_token(self, session_factory, test_session, alice):
        token = create_test_token(alice.id, timedelta(hours=-1))
        is_auth, _ = await authenticate_socket({"token": token}, None, session_factory)
        assert is_auth is False

    @pytest.mark.anyio
    async def test_reject_wrong_secret(self, session_factory, test_session, alice):
        token = create_test_token(alice.id, secret="wrong-secret")
        is_auth, _ = await authenticate_socket({"token": token}, None, session_factory)
        assert is_auth is False

    @pytest.mark.anyio
    async def test_reject_non_numeric_subject(self, session_factory):
        token = create_test_token("alice")
        is_auth, _ = await authenticate_socket({"token": token}, None, session_factory)
        assert is_auth is False

    @pytest.mark.anyio
    async def test_reject_unknown_user(self, session_factory, test_session):
        token = create_test_token(424242)
        is_auth, _ = await authenticate_socket({"token": token}, None, session_factory)
        assert is_auth is False

    @pytest.mark.anyio
    async def test_accept_valid_token(self, session_factory, test_session, alice):
        token = create_test_token(alice.id)
        is_auth, user_data = await authenticate_socket({"token": token}, None, session_factory)
        assert is_auth is True
        assert user_data == {"user_id": alice.id, "name": "alice", "email": "alice@example.com"}
