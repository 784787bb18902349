"""
Tests for bearer-token encoding and decoding.
"""
from __future__ import annotations

from jose import jwt

from cfs_backend.auth import Actor, create_access_token, decode_token
from cfs_backend.config import Settings


def _settings(**overrides):
    return Settings(jwt_secret_key="unit-test-secret", **overrides)


def test_round_trip_carries_subject_and_roles():
    settings = _settings()
    token = create_access_token("user-1", roles=["CONTEST_ADMIN", "CONTEST_ADMIN"], settings=settings)
    actor = decode_token(token, settings)
    assert actor == Actor(user_id="user-1", roles=frozenset({"CONTEST_ADMIN"}))


def test_wrong_secret_is_rejected():
    token = create_access_token("user-1", settings=_settings())
    assert decode_token(token, Settings(jwt_secret_key="other-secret")) is None


def test_expired_token_is_rejected():
    settings = _settings(access_token_expire_minutes=-1)
    token = create_access_token("user-1", settings=settings)
    assert decode_token(token, settings) is None


def test_token_without_subject_is_rejected():
    settings = _settings()
    token = jwt.encode({"roles": []}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    assert decode_token(token, settings) is None


def test_malformed_roles_claim_ignored():
    settings = _settings()
    token = jwt.encode({"sub": "user-2", "roles": "SUPER_ADMIN"}, settings.jwt_secret_key, algorithm="HS256")
    assert decode_token(token, settings) == Actor(user_id="user-2")


def test_garbage_token():
    assert decode_token("not-a-jwt", _settings()) is None


def test_auth_mode():
    assert Settings(mock_services=True).auth_mode == "mock"
    assert Settings(mock_services=False, jwt_secret_key="real").auth_mode == "configured"
