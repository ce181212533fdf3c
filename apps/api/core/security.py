"""
Session tokens for PIN-authenticated gyms.

A token names the gym (`sub`) and carries its role for the client's
benefit only: the server re-reads the role from the gym record on every
request.

SECURITY REQUIREMENTS:
- SECRET_KEY must be set via environment variable
- SECRET_KEY must be cryptographically secure (32+ characters)
- SECRET_KEY must be different for each environment (dev/staging/prod)
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import JWTError, jwt

from core.config import settings

ALGORITHM = "HS256"
TOKEN_TYPE = "gym_session"

SECRET_KEY = settings.SECRET_KEY
if len(SECRET_KEY) < 32:
    raise ValueError(
        "SECRET_KEY must be at least 32 characters. "
        "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )


def create_access_token(gym_id: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """Signed bearer token for one gym session."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": gym_id,
        "role": role,
        "typ": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict]:
    """Claims of a valid, unexpired gym session token; None for anything else."""
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if claims.get("typ") != TOKEN_TYPE or not claims.get("sub"):
        return None
    return claims
