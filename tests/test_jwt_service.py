"""Tests for access-token minting and actor extraction."""

import jwt
import pytest

from pica_monitor.services.jwt_service import actor_from_claims, decode_access_token, generate_access_token
from pica_monitor.services.mutation_gate import Role


def test_round_trip_builds_actor():
    token = generate_access_token(42, 7, "admin")
    actor = actor_from_claims(decode_access_token(token))
    assert (actor.actor_id, actor.organization_id, actor.role) == (42, 7, Role.ADMIN)
    assert actor.is_authenticated


def test_token_without_organization():
    actor = actor_from_claims(decode_access_token(generate_access_token(3, None, "user")))
    assert actor.organization_id is None


def test_wrong_type_is_rejected(app):
    token = jwt.encode({"sub": "1", "type": "refresh"}, app.config["JWT_SECRET_KEY"], algorithm="HS256")
    with pytest.raises(jwt.InvalidTokenError):
        decode_access_token(token)


def test_expired_token(app, monkeypatch):
    monkeypatch.setitem(app.config, "JWT_ACCESS_EXPIRES", -10)
    token = generate_access_token(1, 1, "user")
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_access_token(token)


@pytest.mark.parametrize("claims", [
    {"role": "user"},
    {"sub": "abc", "role": "user"},
    {"sub": "1", "organization_id": "x", "role": "user"},
])
def test_malformed_claims(claims):
    with pytest.raises(jwt.InvalidTokenError):
        actor_from_claims(claims)
