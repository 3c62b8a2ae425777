# linwheel/auth/session.py
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import jwt, exceptions as jose_errors
from pydantic import BaseModel

from linwheel.config import settings

logger = logging.getLogger(__name__)

ALGS = ["HS256"]

class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None

def decode_access_token(token: str) -> dict:
    """
    Verifies a Supabase session JWT (HS256, project JWT secret).
    Audience is checked only when SUPABASE_JWT_AUDIENCE is non-empty.
    """
    if not settings.supabase_jwt_secret:
        raise RuntimeError("SUPABASE_JWT_SECRET is not set. Put it in .env or set it in the environment.")
    audience = settings.supabase_jwt_audience or None
    return jwt.decode(
        token,
        settings.supabase_jwt_secret,
        algorithms=ALGS,
        audience=audience,
        options={"verify_aud": audience is not None},
    )

def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()

def get_current_user(authorization: Optional[str] = Header(None)) -> Optional[CurrentUser]:
    token = _bearer(authorization)
    if not token:
        return None
    try:
        claims = decode_access_token(token)
    except jose_errors.JWTError as e:  # covers expired and bad-claims tokens
        logger.info("rejected session token: %s", e)
        return None
    sub = claims.get("sub")
    if not sub:
        return None
    return CurrentUser(id=str(sub), email=claims.get("email"))

def require_user(user: Optional[CurrentUser] = Depends(get_current_user)) -> CurrentUser:
    if user is None:
        raise HTTPException(401, "Unauthorized")
    return user
