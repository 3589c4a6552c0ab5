from __future__ import annotations
import logging
import secrets
from typing import Optional
from pydantic import BaseModel, EmailStr
from fastapi import APIRouter, HTTPException, Body

from ..config import settings
from ..errors import ErrorResponse
from ..security import create_access_token

logger = logging.getLogger("recipes_api.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_EXAMPLES = {
    "dev": {"summary": "Login with the development PIN", "value": {"email": "cook@example.com", "dev_pin": "000000"}}
}


class DevLoginRequest(BaseModel):
    email: EmailStr
    dev_pin: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str


def _pin_matches(candidate: Optional[str]) -> bool:
    expected = settings.auth_dev_pin
    if not expected or not candidate:
        return False
    return secrets.compare_digest(candidate.encode(), expected.encode())


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Development login; issues an HS256 token whose subject is the email",
    description="Disabled (404) when tokens come from an external identity provider.",
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def login_dev(req: DevLoginRequest = Body(..., openapi_examples=LOGIN_EXAMPLES)):
    if settings.uses_identity_provider:
        raise HTTPException(status_code=404, detail="Tokens are issued by the identity provider")
    if not _pin_matches(req.dev_pin):
        logger.info("Dev login refused for %s", req.email)
        raise HTTPException(status_code=401, detail="Invalid PIN")
    subject = req.email.lower()
    return TokenResponse(
        access_token=create_access_token(subject, expires_minutes=settings.jwt_expire_minutes),
        user_id=subject,
    )
