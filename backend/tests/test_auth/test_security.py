"""Unit tests for password hashing and JWT token creation, decoding, and validation."""

from datetime import timedelta

import pytest
from jose import JWTError

from marketplace.auth.security import (
    ACCESS,
    REFRESH,
    create_access_token,
    create_refresh_token,
    create_token_pair,
    decode_token,
    hash_password,
    verify_password,
)


class TestPasswords:
    def test_hash_is_not_plaintext(self):
        hashed = hash_password("s3cret-pass")
        assert hashed != "s3cret-pass"
        assert hashed.startswith("$2")

    def test_verify_correct_password(self):
        assert verify_password("s3cret-pass", hash_password("s3cret-pass")) is True

    def test_verify_wrong_password(self):
        assert verify_password("wrong", hash_password("s3cret-pass")) is False

    def test_verify_without_stored_hash(self):
        assert verify_password("anything", None) is False


class TestTokens:
    def test_access_token_type(self):
        payload = decode_token(create_access_token({"sub": "user-123"}))
        assert payload["type"] == ACCESS
        assert payload["sub"] == "user-123"
        assert "iat" in payload and "exp" in payload

    def test_refresh_token_type(self):
        payload = decode_token(create_refresh_token({"sub": "user-123"}))
        assert payload["type"] == REFRESH

    def test_expected_type_mismatch_rejected(self):
        token = create_refresh_token({"sub": "user-123"})
        with pytest.raises(JWTError):
            decode_token(token, expected_type=ACCESS)

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "user-123"}, expires_delta=timedelta(seconds=-1))
        with pytest.raises(JWTError):
            decode_token(token)

    def test_tampered_token_rejected(self):
        token = create_access_token({"sub": "user-123"})
        with pytest.raises(JWTError):
            decode_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))

    def test_pair_carries_role(self):
        pair = create_token_pair("user-1", "agent")
        assert pair["token_type"] == "bearer"
        assert decode_token(pair["access_token"])["role"] == "agent"
        assert decode_token(pair["refresh_token"], expected_type=REFRESH)["sub"] == "user-1"

    def test_pair_without_role(self):
        pair = create_token_pair("user-1")
        assert "role" not in decode_token(pair["access_token"])
