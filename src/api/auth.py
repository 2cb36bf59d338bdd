"""Bearer token handling for Supabase-issued JWTs."""

import jwt
from fastapi import Header
from pydantic import BaseModel

from src.api.errors import unauthorized
from src.config.logging_config import setup_logger
from src.config.settings import config

logger = setup_logger(__name__)

JWT_AUDIENCE = "authenticated"


class AuthUser(BaseModel):
    id: str
    email: str | None = None


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def decode_jwt_claims(authorization: str | None) -> dict | None:
    """
    Claims from a ``Bearer <jwt>`` header, or None.

    With SUPABASE_JWT_SECRET set the signature, expiry and audience are
    verified; without it the payload is only decoded.
    """
    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        if config.SUPABASE_JWT_SECRET:
            return jwt.decode(token, config.SUPABASE_JWT_SECRET, algorithms=["HS256"], audience=JWT_AUDIENCE)
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.info("Rejected bearer token: %s", e)
        return None


def decode_jwt_sub(authorization: str | None) -> str | None:
    claims = decode_jwt_claims(authorization)
    return (claims or {}).get("sub") or None


async def get_optional_user(authorization: str | None = Header(default=None)) -> AuthUser | None:
    claims = decode_jwt_claims(authorization)
    if not claims or not claims.get("sub"):
        return None
    return AuthUser(id=claims["sub"], email=claims.get("email"))


async def get_current_user(authorization: str | None = Header(default=None)) -> AuthUser:
    user = await get_optional_user(authorization)
    if user is None:
        raise unauthorized()
    return user
