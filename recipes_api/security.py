from __future__ import annotations
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Dict, Any
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings

logger = logging.getLogger("recipes_api.security")

DEV_ALGO = "HS256"

bearer_scheme = HTTPBearer(auto_error=False, description="JWT issued by the identity provider")

_CHALLENGE = {"WWW-Authenticate": "Bearer"}


@dataclass(frozen=True)
class Principal:
    """Authenticated caller; the workflow only ever sees this, never the raw token."""
    subject: str
    claims: Dict[str, Any] = field(default_factory=dict, compare=False)


def create_access_token(user_id: str, expires_minutes: int | None = None) -> str:
    exp_minutes = expires_minutes or 60
    now = datetime.now(tz=timezone.utc)
    payload: Dict[str, Any] = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=exp_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=DEV_ALGO)


@lru_cache(maxsize=4)
def _jwk_client(jwks_url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(jwks_url, cache_keys=True, lifespan=settings.jwks_cache_lifespan_s)


def _decode_claims(token: str) -> Dict[str, Any]:
    if settings.uses_identity_provider:
        signing_key = _jwk_client(settings.jwks_url()).get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=settings.parsed_auth_algorithms(),
            audience=settings.auth_audience,
            issuer=settings.auth_issuer_url,
        )
    return jwt.decode(token, settings.jwt_secret, algorithms=[DEV_ALGO])


def principal_from_token(token: str) -> Principal:
    try:
        data = _decode_claims(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired", headers=_CHALLENGE)
    except jwt.exceptions.PyJWKClientConnectionError as e:
        logger.error("JWKS endpoint unreachable: %s", e)
        raise HTTPException(status_code=503, detail="Identity provider unavailable")
    except jwt.PyJWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token", headers=_CHALLENGE)
    sub = data.get("sub")
    if not sub or not isinstance(sub, str):
        raise HTTPException(status_code=401, detail="Invalid token payload", headers=_CHALLENGE)
    return Principal(subject=sub, claims=data)


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Missing credentials", headers=_CHALLENGE)
    return principal_from_token(credentials.credentials.strip())
