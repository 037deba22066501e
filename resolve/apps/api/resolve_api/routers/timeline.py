"""Timeline endpoints for cases and contracts."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, ensure_owner_or_admin, get_current_user, get_owned_or_404
from resolve_api.db.models import Case, Contract, TimelineEvent
from resolve_api.db.session import get_db
from resolve_api.schemas import TimelineEventCreateRequest, TimelineEventResponse
from resolve_api.services.timeline_service import record_event

router = APIRouter(prefix="/api/timeline", tags=["timeline"])
logger = logging.getLogger(__name__)


def _ordered(db: Session, *criteria) -> list[TimelineEvent]:
    return (
        db.query(TimelineEvent)
        .filter(*criteria)
        .order_by(TimelineEvent.event_date.desc(), TimelineEvent.id.desc())
        .all()
    )


@router.get("/case/{case_id}", response_model=list[TimelineEventResponse])
async def get_case_timeline(
    case_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TimelineEvent]:
    get_owned_or_404(db, Case, case_id, user, "case")
    return _ordered(db, TimelineEvent.case_id == case_id)


@router.get("/contract/{contract_id}", response_model=list[TimelineEventResponse])
async def get_contract_timeline(
    contract_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TimelineEvent]:
    get_owned_or_404(db, Contract, contract_id, user, "contract")
    return _ordered(db, TimelineEvent.contract_id == contract_id)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=TimelineEventResponse)
async def create_timeline_event(
    request: TimelineEventCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TimelineEvent:
    """Add a user event (note, deadline, meeting) to a case or contract."""
    if request.case_id is not None:
        get_owned_or_404(db, Case, request.case_id, user, "case")
    else:
        get_owned_or_404(db, Contract, request.contract_id, user, "contract")

    event = record_event(
        db,
        user_id=user.id,
        case_id=request.case_id,
        contract_id=request.contract_id,
        event_type=request.event_type,
        title=request.title,
        description=request.description,
        event_date=request.event_date,
        is_completed=False,
    )
    db.commit()
    db.refresh(event)
    return event


@router.put("/{event_id}/complete", response_model=TimelineEventResponse)
async def toggle_timeline_event(
    event_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TimelineEvent:
    """Flip the completed flag."""
    event = db.get(TimelineEvent, event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Timeline event not found: {event_id}",
        )
    ensure_owner_or_admin(event.user_id, user, "timeline event")

    event.is_completed = not event.is_completed
    db.commit()
    db.refresh(event)

    logger.info(
        "timeline.event.toggled",
        extra={"event": "timeline.event.toggled", "timeline_event_id": event.id, "completed": event.is_completed},
    )
    return event
