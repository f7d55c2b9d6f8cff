"""
Unit tests for JWT signing and verification.
"""
from datetime import timedelta

from jose import jwt

from league_engine.services import auth_service


def test_create_and_verify_token():
    token = auth_service.create_access_token({"user_id": "U1"})

    payload = auth_service.verify_token(token)

    assert payload["user_id"] == "U1"
    assert "exp" in payload


def test_expired_token_is_rejected():
    token = auth_service.create_access_token({"user_id": "U1"}, expires_delta=timedelta(seconds=-5))

    assert auth_service.verify_token(token) is None


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"user_id": "U1"}, "some-other-secret", algorithm=auth_service.ALGORITHM)

    assert auth_service.verify_token(token) is None


def test_garbage_is_rejected():
    assert auth_service.verify_token("not-a-jwt") is None
