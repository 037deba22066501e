"""Timeline event recording shared by cases, contracts and documents."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from resolve_api.db.models import TimelineEvent, utcnow

logger = logging.getLogger(__name__)


def record_event(
    db: Session,
    *,
    user_id: str,
    event_type: str,
    title: str,
    description: Optional[str] = None,
    case_id: Optional[int] = None,
    contract_id: Optional[int] = None,
    event_date: Optional[datetime] = None,
    is_completed: bool = True,
) -> TimelineEvent:
    """Add a timeline event to the session. The caller commits."""
    event = TimelineEvent(
        user_id=user_id,
        case_id=case_id,
        contract_id=contract_id,
        event_type=event_type,
        title=title,
        description=description,
        event_date=event_date or utcnow(),
        is_completed=is_completed,
    )
    db.add(event)
    logger.info(
        "timeline.event.recorded",
        extra={
            "event": "timeline.event.recorded",
            "event_type": event_type,
            "case_id": case_id,
            "contract_id": contract_id,
        },
    )
    return event
