"""Calendar integrations and events.

Integrations store provider credentials the client already obtained; token
refresh and provider sync are not performed here, so events stay in
sync_status "pending".
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user, get_owned_or_404
from resolve_api.db.models import CalendarEvent, CalendarIntegration, Case, Contract, as_utc, utcnow
from resolve_api.db.session import get_db
from resolve_api.schemas import (
    CalendarEventCreateRequest,
    CalendarEventResponse,
    CalendarEventUpdateRequest,
    CalendarIntegrationCreateRequest,
    CalendarIntegrationResponse,
)

router = APIRouter(prefix="/api/calendar", tags=["calendar"])
logger = logging.getLogger(__name__)


# ============================================================================
# Integrations
# ============================================================================


@router.get("/integrations", response_model=list[CalendarIntegrationResponse])
async def list_integrations(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[CalendarIntegration]:
    return (
        db.query(CalendarIntegration)
        .filter(CalendarIntegration.user_id == user.id, CalendarIntegration.is_active.is_(True))
        .order_by(CalendarIntegration.created_at.desc())
        .all()
    )


@router.post("/integrations", status_code=status.HTTP_201_CREATED, response_model=CalendarIntegrationResponse)
async def create_integration(
    request: CalendarIntegrationCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CalendarIntegration:
    """Link a Google or Outlook calendar. A new link replaces an active one for the same provider."""
    existing = (
        db.query(CalendarIntegration)
        .filter(
            CalendarIntegration.user_id == user.id,
            CalendarIntegration.provider == request.provider,
            CalendarIntegration.is_active.is_(True),
        )
        .all()
    )
    for integration in existing:
        integration.is_active = False

    integration = CalendarIntegration(
        user_id=user.id,
        provider=request.provider,
        access_token=request.access_token,
        refresh_token=request.refresh_token,
        token_expires_at=request.token_expires_at,
        calendar_id=request.calendar_id or "primary",
        is_active=True,
    )
    db.add(integration)
    db.commit()
    db.refresh(integration)

    logger.info(
        "calendar.integration.connected",
        extra={"event": "calendar.integration.connected", "provider": integration.provider},
    )
    return integration


@router.delete("/integrations/{integration_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_integration(
    integration_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    integration = get_owned_or_404(db, CalendarIntegration, integration_id, user, "calendar integration")

    db.query(CalendarEvent).filter(CalendarEvent.integration_id == integration.id).update(
        {CalendarEvent.integration_id: None}, synchronize_session=False
    )
    db.delete(integration)
    db.commit()

    logger.info(
        "calendar.integration.disconnected",
        extra={"event": "calendar.integration.disconnected", "provider": integration.provider},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Events
# ============================================================================


def _check_links(
    db: Session,
    user: AuthUser,
    case_id: Optional[int],
    contract_id: Optional[int],
    integration_id: Optional[int],
) -> None:
    if case_id is not None:
        get_owned_or_404(db, Case, case_id, user, "case")
    if contract_id is not None:
        get_owned_or_404(db, Contract, contract_id, user, "contract")
    if integration_id is not None:
        get_owned_or_404(db, CalendarIntegration, integration_id, user, "calendar integration")


@router.get("/events", response_model=list[CalendarEventResponse])
async def list_events(
    case_id: Optional[int] = Query(None, alias="caseId"),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[CalendarEvent]:
    """Caller's events in start order, optionally for one case."""
    query = db.query(CalendarEvent).filter(CalendarEvent.user_id == user.id)
    if case_id is not None:
        query = query.filter(CalendarEvent.case_id == case_id)
    return query.order_by(CalendarEvent.start_time.asc(), CalendarEvent.id.asc()).all()


@router.post("/events", status_code=status.HTTP_201_CREATED, response_model=CalendarEventResponse)
async def create_event(
    request: CalendarEventCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CalendarEvent:
    _check_links(db, user, request.case_id, request.contract_id, request.integration_id)

    event = CalendarEvent(
        user_id=user.id,
        case_id=request.case_id,
        contract_id=request.contract_id,
        integration_id=request.integration_id,
        title=request.title,
        description=request.description,
        start_time=request.start_time,
        end_time=request.end_time,
        location=request.location,
        attendees=request.attendees or [],
        reminder_minutes=request.reminder_minutes,
        is_synced=False,
        sync_status="pending",
    )
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info(
        "calendar.event.created",
        extra={"event": "calendar.event.created", "calendar_event_id": event.id, "case_id": event.case_id},
    )
    return event


@router.put("/events/{event_id}", response_model=CalendarEventResponse)
async def update_event(
    event_id: int,
    request: CalendarEventUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CalendarEvent:
    """Partial update. The resulting end time must still be after the start time."""
    event = get_owned_or_404(db, CalendarEvent, event_id, user, "calendar event")
    changes = request.model_dump(exclude_unset=True)

    start = as_utc(changes.get("start_time", event.start_time))
    end = as_utc(changes.get("end_time", event.end_time))
    if end <= start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="endTime must be after startTime",
        )

    for field, value in changes.items():
        setattr(event, field, value)
    event.updated_at = utcnow()
    if event.is_synced:
        event.sync_status = "pending"
    db.commit()
    db.refresh(event)
    return event


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    event = get_owned_or_404(db, CalendarEvent, event_id, user, "calendar event")
    db.delete(event)
    db.commit()
    logger.info("calendar.event.deleted", extra={"event": "calendar.event.deleted", "calendar_event_id": event_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
