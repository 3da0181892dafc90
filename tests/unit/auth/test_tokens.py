"""Tests for session token signing and verification."""

import jwt
import pytest

from gateway_control.auth.tokens import ALGORITHM, TokenCodec
from gateway_control.exceptions import ErrorCode, SessionInvalidError
from tests.conftest import SESSION_SECRET


class TestTokenCodec:
    """Test TokenCodec sign/verify behavior."""

    def test_sign_stamps_issue_and_expiry(self, token_codec, clock):
        token = token_codec.sign({"sub": "tenant-1"})

        claims = token_codec.verify(token)

        assert claims["sub"] == "tenant-1"
        assert claims["iat"] == int(clock().timestamp())
        assert claims["exp"] - claims["iat"] == token_codec.default_ttl_seconds

    def test_ttl_override(self, token_codec):
        claims = token_codec.verify(token_codec.sign({"sub": "tenant-1"}, ttl_seconds=60))

        assert claims["exp"] - claims["iat"] == 60

    def test_expired_token_is_invalid_session(self, token_codec):
        token = token_codec.sign({"sub": "tenant-1"}, ttl_seconds=-10)

        with pytest.raises(SessionInvalidError) as exc_info:
            token_codec.verify(token)

        assert exc_info.value.error_code == ErrorCode.AUTHENTICATION_INVALID
        assert exc_info.value.status_code == 401

    def test_token_signed_with_other_secret_is_rejected(self, token_codec, clock):
        forged = TokenCodec("another-secret", 3600, clock=clock).sign({"sub": "tenant-1"})

        with pytest.raises(SessionInvalidError):
            token_codec.verify(forged)

    def test_token_without_subject_is_rejected(self, token_codec):
        with pytest.raises(SessionInvalidError):
            token_codec.verify(token_codec.sign({"email": "x@example.com"}))

    def test_token_without_expiry_is_rejected(self, token_codec):
        token = jwt.encode({"sub": "tenant-1"}, SESSION_SECRET, algorithm=ALGORITHM)

        with pytest.raises(SessionInvalidError):
            token_codec.verify(token)

    def test_unsigned_token_is_rejected(self, token_codec):
        token = jwt.encode({"sub": "tenant-1", "exp": 9999999999}, None, algorithm="none")

        with pytest.raises(SessionInvalidError):
            token_codec.verify(token)

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c"])
    def test_malformed_tokens_are_rejected(self, token_codec, garbage):
        with pytest.raises(SessionInvalidError):
            token_codec.verify(garbage)
