"""
Authentication dependencies.

Provides the FastAPI dependency that resolves the current user's energy
profile from a bearer token.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from core.database import get_db
from core.exceptions import UnauthorizedError
from core.logging import bind_log_context
from core.security import decode_access_token
from models import UserProfile
from services.energy_points import get_or_create_profile

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> UserProfile:
    """
    Get the current authenticated user's profile from JWT token.

    Users are authenticated elsewhere, so a valid token for an unseen user
    provisions an empty profile.
    """
    # Check if credentials are missing (return 401, not 403)
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid authentication credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")

    try:
        user_id_uuid = UUID(user_id)
    except ValueError:
        raise UnauthorizedError("Invalid user ID format")

    bind_log_context(user_id=str(user_id_uuid))
    return get_or_create_profile(db, user_id_uuid)
