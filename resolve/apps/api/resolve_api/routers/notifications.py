"""Notification center endpoints (always scoped to the caller)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user
from resolve_api.db.models import Notification
from resolve_api.db.session import get_db
from resolve_api.schemas import NotificationGenerateResponse, NotificationResponse, NotificationSummary
from resolve_api.services import notification_service
from resolve_api.services.notification_service import NotificationFilters

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)


def _not_found(notification_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Notification not found: {notification_id}",
    )


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(unread|read|archived)$"),
    priority: Optional[str] = Query(None, pattern="^(low|medium|high|critical)$"),
    type: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[Notification]:
    filters = NotificationFilters(status=status_filter, priority=priority, type=type, limit=limit, offset=offset)
    return notification_service.list_notifications(db, user.id, filters)


@router.get("/summary", response_model=NotificationSummary)
async def get_notification_summary(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationSummary:
    return NotificationSummary(**notification_service.get_summary(db, user.id))


@router.put("/read-all")
async def mark_all_notifications_read(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    updated = notification_service.mark_all_read(db, user.id)
    return {"updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Notification:
    notification = notification_service.mark_read(db, notification_id, user.id)
    if notification is None:
        raise _not_found(notification_id)
    return notification


@router.put("/{notification_id}/archive", response_model=NotificationResponse)
async def archive_notification(
    notification_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Notification:
    notification = notification_service.archive(db, notification_id, user.id)
    if notification is None:
        raise _not_found(notification_id)
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    if not notification_service.delete(db, notification_id, user.id):
        raise _not_found(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/generate", response_model=NotificationGenerateResponse)
async def generate_notifications(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationGenerateResponse:
    """Run the deadline and smart generators for the caller."""
    created = notification_service.generate_deadline_notifications(db, user.id)
    created += notification_service.generate_smart_notifications(db, user.id)
    logger.info(
        "notification.generate.completed",
        extra={"event": "notification.generate.completed", "created_count": created},
    )
    return NotificationGenerateResponse(created=created)
