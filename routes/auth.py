"""
Authentication Routes

Issues guest session tokens. Each guest gets a fresh identity.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from backend.auth.jwt import Identity, create_access_token, get_current_identity
from routes.schemas.auth import GuestSessionRequest, GuestSessionResponse

logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

auth_router = APIRouter(prefix="/api/auth", tags=["authentication"])


@auth_router.post("/guest", response_model=GuestSessionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/hour")
def create_guest_session(request: Request, data: GuestSessionRequest):
    """
    Start a guest session.

    Rate limit: 30 sessions per hour per IP.

    Returns:
        GuestSessionResponse with a bearer token for a new identity
    """
    user_id = str(uuid.uuid4())
    token = create_access_token(user_id, data.display_name)
    logger.info(f"Guest session created: {user_id}")
    return GuestSessionResponse(access_token=token, user_id=user_id, display_name=data.display_name)


@auth_router.get("/me", response_model=Identity)
def whoami(identity: Identity = Depends(get_current_identity)):
    return identity
