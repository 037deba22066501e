"""Current-user endpoints.

Sign-up and sign-in happen against Supabase directly; the API only exposes
the local profile (role, plan) and lets the user edit their name.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user
from resolve_api.db.models import User
from resolve_api.db.session import get_db
from resolve_api.schemas import ProfileUpdateRequest, UserResponse

router = APIRouter(prefix="/api", tags=["users"])
logger = logging.getLogger(__name__)


def _profile(db: Session, user: AuthUser) -> User:
    db_user = db.get(User, user.id)
    if db_user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return db_user


@router.get("/auth/user", response_model=UserResponse)
async def get_auth_user(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    return _profile(db, user)


@router.put("/user/profile", response_model=UserResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    """Update first/last name. Omitted fields are left unchanged."""
    db_user = _profile(db, user)

    for field, value in request.model_dump(exclude_unset=True).items():
        setattr(db_user, field, value.strip() if isinstance(value, str) else value)

    db.commit()
    db.refresh(db_user)

    logger.info(
        "user.profile.updated",
        extra={"event": "user.profile.updated", "user_id": user.id},
    )
    return db_user
