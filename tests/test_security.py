from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException

from recipes_api import security
from recipes_api.config import settings
from recipes_api.security import Principal, create_access_token, principal_from_token

from conftest import soup_payload

ISSUER = "https://issuer.example.com/"
AUDIENCE = "recipes"


def _claims(**overrides):
    now = datetime.now(tz=timezone.utc)
    claims = {
        "sub": "auth0|cook",
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=5)).timestamp()),
    }
    claims.update(overrides)
    return claims


class FakeJWKClient:
    def __init__(self, public_key=None, error=None):
        self.public_key = public_key
        self.error = error

    def get_signing_key_from_jwt(self, token):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(key=self.public_key)


@pytest.fixture
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def identity_provider(monkeypatch, rsa_key):
    monkeypatch.setattr(settings, "auth_issuer_url", ISSUER)
    monkeypatch.setattr(settings, "auth_audience", AUDIENCE)
    monkeypatch.setattr(settings, "auth_algorithms", "RS256")
    fake = FakeJWKClient(public_key=rsa_key.public_key())
    monkeypatch.setattr(security, "_jwk_client", lambda url: fake)
    return fake


def _rs256(key, **overrides):
    return jwt.encode(_claims(**overrides), key, algorithm="RS256", headers={"kid": "test-key"})


# --- development tokens (HS256) ---

def test_dev_token_round_trip():
    principal = principal_from_token(create_access_token("u1"))
    assert principal == Principal(subject="u1")
    assert principal.claims["sub"] == "u1"


def test_expired_token_is_rejected():
    past = datetime.now(tz=timezone.utc) - timedelta(hours=1)
    token = jwt.encode({"sub": "u1", "exp": int(past.timestamp())}, settings.jwt_secret, algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        principal_from_token(token)
    assert exc.value.status_code == 401
    assert exc.value.detail == "Token expired"
    assert exc.value.headers == {"WWW-Authenticate": "Bearer"}


def test_token_signed_with_another_secret_is_rejected():
    token = jwt.encode({"sub": "u1"}, "not-the-secret", algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        principal_from_token(token)
    assert exc.value.status_code == 401
    assert exc.value.detail == "Invalid token"


def test_token_without_subject_is_rejected():
    token = jwt.encode({"scope": "openid"}, settings.jwt_secret, algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        principal_from_token(token)
    assert exc.value.detail == "Invalid token payload"


# --- identity provider tokens (RS256 + JWKS) ---

def test_identity_provider_token_accepted(identity_provider, rsa_key):
    principal = principal_from_token(_rs256(rsa_key))
    assert principal.subject == "auth0|cook"
    assert principal.claims["aud"] == AUDIENCE


def test_identity_provider_rejects_dev_tokens(identity_provider):
    with pytest.raises(HTTPException) as exc:
        principal_from_token(create_access_token("u1"))
    assert exc.value.status_code == 401


def test_identity_provider_rejects_wrong_audience(identity_provider, rsa_key):
    with pytest.raises(HTTPException) as exc:
        principal_from_token(_rs256(rsa_key, aud="someone-else"))
    assert exc.value.status_code == 401


def test_identity_provider_rejects_wrong_issuer(identity_provider, rsa_key):
    with pytest.raises(HTTPException) as exc:
        principal_from_token(_rs256(rsa_key, iss="https://evil.example.com/"))
    assert exc.value.status_code == 401


def test_identity_provider_rejects_foreign_signature(identity_provider):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with pytest.raises(HTTPException) as exc:
        principal_from_token(_rs256(other))
    assert exc.value.status_code == 401


def test_unreachable_jwks_is_503(identity_provider, rsa_key):
    identity_provider.error = jwt.exceptions.PyJWKClientConnectionError("connection refused")
    with pytest.raises(HTTPException) as exc:
        principal_from_token(_rs256(rsa_key))
    assert exc.value.status_code == 503


def test_identity_provider_subject_becomes_author(identity_provider, rsa_key, client):
    headers = {"Authorization": f"Bearer {_rs256(rsa_key)}"}
    r = client.post("/recipes", json=soup_payload(), headers=headers)
    assert r.status_code == 201, r.text
    assert r.json()["author"] == "auth0|cook"

    identity_provider.error = jwt.exceptions.PyJWKClientConnectionError("connection refused")
    r = client.patch(f"/recipes/{r.json()['id']}", json={"title": "x"}, headers=headers)
    assert r.status_code == 503
    assert r.json()["code"] == "unavailable"
