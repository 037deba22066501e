"""Admin endpoints for user and role management.

WARNING: These endpoints are for administrators only.
- Protected by require_admin (role read from the users table)
- Role changes are audit logged
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, require_admin
from resolve_api.db.models import ROLES, User
from resolve_api.db.session import get_db
from resolve_api.schemas import RoleInfo, RoleUpdateRequest, UserResponse
from resolve_api.supabase_client import get_supabase_admin_client

router = APIRouter(tags=["admin"])
logger = logging.getLogger(__name__)

ROLE_CATALOGUE: list[dict[str, str]] = [
    {
        "value": "user",
        "label": "User",
        "description": "Tradie account: manages their own applications, cases and documents.",
    },
    {
        "value": "moderator",
        "label": "Moderator",
        "description": "Reviews applications and can approve or reject them.",
    },
    {
        "value": "admin",
        "label": "Administrator",
        "description": "Full access to every record, user roles and billing exemptions.",
    },
]


def _load_or_import_user(db: Session, user_id: str) -> User | None:
    """Local users row, importing it from Supabase auth if the user never signed in."""
    user = db.get(User, user_id)
    if user is not None:
        return user

    try:
        response = get_supabase_admin_client().auth.admin.get_user_by_id(user_id)
    except Exception as e:
        logger.info(
            "admin.user.lookup_failed",
            extra={"event": "admin.user.lookup_failed", "target_user_id": user_id, "error_type": type(e).__name__},
        )
        return None

    auth_user = getattr(response, "user", None)
    if auth_user is None:
        return None

    user = User(id=auth_user.id, email=auth_user.email, role="user")
    db.add(user)
    db.flush()
    return user


@router.get("/admin/users", response_model=list[UserResponse])
async def list_users(
    admin: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[User]:
    return db.query(User).order_by(User.created_at.desc()).all()


@router.put("/api/admin/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    request: Request,
    body: RoleUpdateRequest,
    admin: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> User:
    """Change a user's role.

    Raises:
        HTTPException 400: Role is not one of user, moderator, admin
        HTTPException 403: Caller is not an admin (raised before any lookup)
        HTTPException 404: User not found
    """
    if body.role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role '{body.role}'. Must be one of: {', '.join(ROLES)}",
        )

    user = _load_or_import_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User not found: {user_id}")

    previous_role = user.role
    user.role = body.role
    db.commit()
    db.refresh(user)

    logger.warning(
        "admin.role.changed",
        extra={
            "event": "admin.role.changed",
            "actor_user_id": admin.id,
            "target_user_id": user_id,
            "old_role": previous_role,
            "new_role": body.role,
            "path": request.url.path,
        },
    )
    return user


@router.get("/api/admin/roles", response_model=list[RoleInfo])
async def list_roles(admin: AuthUser = Depends(require_admin)) -> list[RoleInfo]:
    return [RoleInfo(**entry) for entry in ROLE_CATALOGUE]
