"""Session authentication and role-based authorization.

Supabase JWT-based session auth for user-authenticated operations.

FLOW:
1. Client signs in with Supabase and receives a JWT access_token
2. Client calls the API with Authorization: Bearer <jwt>
3. get_current_user validates the JWT with Supabase, then loads (or creates)
   the local users row that carries the role and billing fields
4. Routes declare role requirements with require_admin / require_moderator

SECURITY:
- JWT signature verified by Supabase
- Role is read from the users table, never from the token
- Any identity-provider error is treated as unauthenticated (401)
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Query, Session

from resolve_api.context import request_id_var, user_id_var
from resolve_api.db.models import ROLES, User
from resolve_api.db.session import get_db
from resolve_api.schemas import ProblemDetail
from resolve_api.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)

session_security = HTTPBearer(auto_error=False, description="Supabase JWT Session Token")


@dataclass(frozen=True)
class AuthUser:
    """Authenticated caller resolved from a session token."""

    id: str
    email: Optional[str]
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _create_session_problem(
    status_code: int,
    title: str,
    detail: str,
    request: Request,
) -> HTTPException:
    """Create RFC 9457 Problem Detail for session auth errors.

    Args:
        status_code: HTTP status code
        title: Problem title
        detail: Human-readable detail
        request: FastAPI request

    Returns:
        HTTPException with problem+json response
    """
    request_id = request_id_var.get()

    problem = ProblemDetail(
        type=f"https://api.resolve.au/problems/{title.lower().replace(' ', '-')}",
        title=title,
        status=status_code,
        detail=detail,
        instance=f"urn:resolve:trace:{request_id or uuid.uuid4()}",
    )

    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None

    return HTTPException(
        status_code=status_code,
        detail=problem.model_dump(exclude_none=True),
        headers=headers,
    )


def _load_or_create_user(db: Session, user_id: str, email: Optional[str]) -> User:
    """Return the local users row, creating it on first authentication."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        user = User(id=user_id, email=email, role="user")
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(
            "user.created",
            extra={"event": "user.created", "user_id": user_id},
        )
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(session_security),
    db: Session = Depends(get_db),
) -> AuthUser:
    """Resolve the bearer JWT to an authenticated user with role.

    Args:
        request: FastAPI request
        credentials: HTTP Bearer credentials (JWT)
        db: Database session

    Returns:
        AuthUser with id, email, role

    Raises:
        HTTPException: 401 if authentication fails (RFC 9457 Problem Detail)
    """
    if not credentials:
        raise _create_session_problem(
            status_code=status.HTTP_401_UNAUTHORIZED,
            title="Unauthorized",
            detail="Missing Authorization header. Please log in first.",
            request=request,
        )

    try:
        supabase = get_supabase_client()
        user_response = supabase.auth.get_user(credentials.credentials)

        if not user_response or not user_response.user:
            raise _create_session_problem(
                status_code=status.HTTP_401_UNAUTHORIZED,
                title="Unauthorized",
                detail="Invalid or expired session token. Please log in again.",
                request=request,
            )

        supabase_user = user_response.user
    except HTTPException:
        raise
    except Exception as e:
        logger.warning(
            "session.jwt.invalid",
            extra={"event": "session.jwt.invalid", "error_type": type(e).__name__},
        )
        raise _create_session_problem(
            status_code=status.HTTP_401_UNAUTHORIZED,
            title="Unauthorized",
            detail="Session validation failed. Please log in again.",
            request=request,
        )

    user = _load_or_create_user(db, supabase_user.id, supabase_user.email)
    role = user.role if user.role in ROLES else "user"

    user_id_var.set(user.id)

    return AuthUser(id=user.id, email=user.email or supabase_user.email, role=role)


async def optional_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(session_security),
    db: Session = Depends(get_db),
) -> Optional[AuthUser]:
    """Attach identity when a valid token is present; never blocks the request."""
    if not credentials:
        return None
    try:
        return await get_current_user(request, credentials, db)
    except HTTPException:
        logger.info(
            "session.optional.anonymous",
            extra={"event": "session.optional.anonymous"},
        )
        return None


def require_role(*roles: str) -> Callable[..., AuthUser]:
    """Build a dependency that admits only callers holding one of ``roles``.

    Args:
        roles: Allowed role names

    Returns:
        FastAPI dependency returning the AuthUser

    Raises:
        HTTPException 403 (from the dependency): role not allowed
    """
    allowed = frozenset(roles)

    async def _dependency(
        request: Request,
        user: AuthUser = Depends(get_current_user),
    ) -> AuthUser:
        if user.role not in allowed:
            logger.warning(
                "authz.role.denied",
                extra={
                    "event": "authz.role.denied",
                    "user_id": user.id,
                    "role": user.role,
                    "required": sorted(allowed),
                    "path": request.url.path,
                },
            )
            raise _create_session_problem(
                status_code=status.HTTP_403_FORBIDDEN,
                title="Forbidden",
                detail=f"This action requires one of the roles: {', '.join(sorted(allowed))}.",
                request=request,
            )
        return user

    return _dependency


require_admin = require_role("admin")
require_moderator = require_role("admin", "moderator")


def ensure_owner_or_admin(owner_id: Optional[str], user: AuthUser, resource: str = "resource") -> None:
    """Raise 403 unless the caller owns the row or is an admin."""
    if user.is_admin or owner_id == user.id:
        return

    logger.warning(
        "authz.ownership.denied",
        extra={
            "event": "authz.ownership.denied",
            "user_id": user.id,
            "resource": resource,
        },
    )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"You do not have access to this {resource}.",
    )


def scope_to_owner(query: Query, model: type, user: AuthUser) -> Query:
    """Filter a query to the caller's rows unless the caller is an admin."""
    if user.is_admin:
        return query
    return query.filter(model.user_id == user.id)


def get_owned_or_404(db: Session, model: type, row_id: int, user: AuthUser, resource: str) -> Any:
    """Load a row by primary key, 404 if missing, 403 unless owned by the caller or admin."""
    row = db.get(model, row_id)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource.capitalize()} not found: {row_id}",
        )
    ensure_owner_or_admin(row.user_id, user, resource)
    return row
