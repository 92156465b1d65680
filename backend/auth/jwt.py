"""
JWT Authentication for Chronicle.

Tokens carry a stable user identity in `sub`. There is no account table:
whoever holds a valid token is that identity.
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from backend.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_DAYS

# Security scheme for Bearer token
security = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    """Token payload data."""
    user_id: str
    display_name: Optional[str] = None


def create_access_token(user_id: str, display_name: Optional[str] = None) -> str:
    """
    Create a JWT access token for a user identity.

    Args:
        user_id: Stable identity, stored as `sub`
        display_name: Optional name shown to other players

    Returns:
        JWT token string

    Example:
        token = create_access_token(str(uuid.uuid4()), "Ari")
    """
    now = datetime.utcnow()
    payload = {
        "sub": user_id,
        "name": display_name,
        "exp": now + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS),
        "iat": now,
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[Identity]:
    """
    Verify and decode a JWT token.

    Returns:
        Identity if valid, None if invalid or expired
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    return Identity(user_id=user_id, display_name=payload.get("name"))


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """
    FastAPI dependency returning the caller's identity from the Bearer token.

    Raises:
        HTTPException 401: Missing, invalid or expired token

    Example:
        @router.post("/votes")
        def vote(identity: Identity = Depends(get_current_identity)):
            return {"user_id": identity.user_id}
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = verify_token(credentials.credentials)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return identity


async def get_current_identity_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Identity]:
    """Like get_current_identity, but None when no valid token is sent."""
    if credentials is None:
        return None
    return verify_token(credentials.credentials)
