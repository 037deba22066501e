"""User notifications: listing, state changes and the deadline/smart generators.

All functions take the caller's user id and never touch another user's rows.
Expiry is evaluated in Python so naive timestamps (SQLite) and aware
timestamps (Postgres) compare the same way.
"""

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from resolve_api.db.models import Case, Notification, User, as_utc, utcnow

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}
DEADLINE_WINDOW_DAYS = 7
DEADLINE_DEDUP_WINDOW = timedelta(hours=24)
IDLE_CASE_DAYS = 7
TIP_LIFETIME = timedelta(days=7)

LEGAL_TIPS = (
    {
        "title": "Legal Tip: Documentation",
        "message": (
            "Always keep detailed records of all communications and work performed. "
            "This strengthens your position in disputes."
        ),
        "category": "general",
    },
    {
        "title": "Payment Tip: Invoicing",
        "message": "Send invoices immediately upon completion. Include clear payment terms and due dates.",
        "category": "payment_disputes",
    },
    {
        "title": "Contract Tip: Scope Definition",
        "message": "Define scope of work clearly in contracts to avoid disputes about additional charges.",
        "category": "contract_issues",
    },
    {
        "title": "SOPA Tip: Time Limits",
        "message": (
            "Payment claims under security of payment laws must be served within strict "
            "timeframes. Missing a deadline can invalidate your claim."
        ),
        "category": "payment_disputes",
    },
)


@dataclass
class NotificationFilters:
    status: Optional[str] = None
    priority: Optional[str] = None
    type: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


def _is_live(notification: Notification, now: datetime) -> bool:
    expires_at = as_utc(notification.expires_at)
    return expires_at is None or expires_at > now


def _sort_key(notification: Notification) -> tuple[int, float]:
    created = as_utc(notification.created_at)
    return (
        -PRIORITY_ORDER.get(notification.priority, 1),
        -(created.timestamp() if created else 0.0),
    )


def create_notification(
    db: Session,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    priority: str = "medium",
    category: Optional[str] = None,
    action_url: Optional[str] = None,
    action_label: Optional[str] = None,
    related_id: Optional[int] = None,
    related_type: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    expires_at: Optional[datetime] = None,
    commit: bool = True,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        priority=priority,
        status="unread",
        category=category,
        action_url=action_url,
        action_label=action_label,
        related_id=related_id,
        related_type=related_type,
        meta=metadata,
        expires_at=expires_at,
    )
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    logger.info(
        "notification.created",
        extra={"event": "notification.created", "user_id": user_id, "type": type, "priority": priority},
    )
    return notification


def notify_admins(db: Session, **kwargs: Any) -> int:
    """Create the same notification for every admin user. Returns the number created."""
    admins = db.query(User).filter(User.role == "admin").all()
    for admin in admins:
        create_notification(db, user_id=admin.id, commit=False, **kwargs)
    db.commit()
    return len(admins)


def list_notifications(
    db: Session,
    user_id: str,
    filters: Optional[NotificationFilters] = None,
) -> list[Notification]:
    """Live notifications for a user, highest priority first, then newest.

    Args:
        db: Database session
        user_id: Owner
        filters: Optional status/priority/type filters and pagination

    Returns:
        Sorted notifications with expired rows removed
    """
    filters = filters or NotificationFilters()
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if filters.status:
        query = query.filter(Notification.status == filters.status)
    if filters.priority:
        query = query.filter(Notification.priority == filters.priority)
    if filters.type:
        query = query.filter(Notification.type == filters.type)

    now = utcnow()
    rows = sorted((n for n in query.all() if _is_live(n, now)), key=_sort_key)

    start = max(filters.offset, 0)
    end = start + filters.limit if filters.limit is not None else None
    return rows[start:end]


def get_summary(db: Session, user_id: str) -> dict[str, Any]:
    """Counts over live, non-archived notifications."""
    rows = [n for n in list_notifications(db, user_id) if n.status != "archived"]
    by_type: dict[str, int] = {}
    for n in rows:
        by_type[n.type] = by_type.get(n.type, 0) + 1
    return {
        "total": len(rows),
        "unread": sum(1 for n in rows if n.status == "unread"),
        "critical": sum(1 for n in rows if n.priority == "critical"),
        "high": sum(1 for n in rows if n.priority == "high"),
        "by_type": by_type,
    }


def _get_owned(db: Session, notification_id: int, user_id: str) -> Optional[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )


def mark_read(db: Session, notification_id: int, user_id: str) -> Optional[Notification]:
    """Mark one notification read.

    Returns:
        The notification, or None if it does not exist for this user.
        Already-read or archived rows are returned unchanged.
    """
    notification = _get_owned(db, notification_id, user_id)
    if notification is None:
        return None
    if notification.status == "unread":
        notification.status = "read"
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    now = utcnow()
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.status == "unread")
        .update({Notification.status: "read", Notification.read_at: now}, synchronize_session=False)
    )
    db.commit()
    return updated


def archive(db: Session, notification_id: int, user_id: str) -> Optional[Notification]:
    notification = _get_owned(db, notification_id, user_id)
    if notification is None:
        return None
    if notification.status != "archived":
        notification.status = "archived"
        notification.archived_at = utcnow()
        db.commit()
        db.refresh(notification)
    return notification


def delete(db: Session, notification_id: int, user_id: str) -> bool:
    notification = _get_owned(db, notification_id, user_id)
    if notification is None:
        return False
    db.delete(notification)
    db.commit()
    return True


def days_until_due(due: datetime, now: datetime) -> int:
    """Whole days until a deadline, rounded up. Overdue deadlines are zero or negative."""
    return math.ceil((as_utc(due) - now).total_seconds() / 86400)


def deadline_priority(days_until: int) -> Optional[tuple[str, str, str]]:
    """(priority, title, message template) for a deadline, or None outside the window."""
    if days_until <= 1:
        return "critical", "Deadline Today!", 'Your case "{title}" deadline is today. Take immediate action.'
    if days_until <= 3:
        return "high", "Deadline Approaching", 'Your case "{title}" deadline is in {days} days.'
    if days_until <= DEADLINE_WINDOW_DAYS:
        return "medium", "Deadline Reminder", 'Your case "{title}" deadline is in {days} days.'
    return None


def _has_recent_deadline_notification(db: Session, user_id: str, case_id: int, now: datetime) -> bool:
    cutoff = now - DEADLINE_DEDUP_WINDOW
    recent = (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.type == "deadline",
            Notification.related_type == "case",
            Notification.related_id == case_id,
        )
        .all()
    )
    return any(as_utc(n.created_at) > cutoff for n in recent)


def generate_deadline_notifications(db: Session, user_id: str, now: Optional[datetime] = None) -> int:
    """Create deadline alerts for open cases whose next action is due within a week.

    Returns:
        Number of notifications created
    """
    now = now or utcnow()
    cases = (
        db.query(Case)
        .filter(Case.user_id == user_id, Case.next_action_due.isnot(None), Case.status != "resolved")
        .all()
    )

    created = 0
    for case in cases:
        due = as_utc(case.next_action_due)
        days_until = days_until_due(due, now)
        rule = deadline_priority(days_until)
        if rule is None:
            continue
        if _has_recent_deadline_notification(db, user_id, case.id, now):
            continue

        priority, title, template = rule
        create_notification(
            db,
            user_id=user_id,
            type="deadline",
            title=title,
            message=template.format(title=case.title, days=days_until),
            priority=priority,
            category="payment_disputes",
            related_id=case.id,
            related_type="case",
            action_url=f"/cases/{case.id}",
            action_label="View Case",
            metadata={"daysUntilDeadline": days_until, "deadlineDate": due.isoformat()},
            commit=False,
        )
        created += 1

    db.commit()
    return created


def generate_smart_notifications(db: Session, user_id: str, now: Optional[datetime] = None) -> int:
    """Nudge idle active cases and post one legal tip.

    Returns:
        Number of notifications created
    """
    now = now or utcnow()
    created = 0

    cases = db.query(Case).filter(Case.user_id == user_id, Case.status == "active").all()
    for case in cases:
        last_touched = as_utc(case.updated_at or case.created_at)
        idle_days = (now - last_touched).days
        if idle_days < IDLE_CASE_DAYS:
            continue
        create_notification(
            db,
            user_id=user_id,
            type="action_required",
            title="Case Action Needed",
            message=(
                f'Your case "{case.title}" has had no activity for {idle_days} days. '
                "Consider taking the next step."
            ),
            priority="medium",
            category="payment_disputes",
            related_id=case.id,
            related_type="case",
            action_url=f"/cases/{case.id}",
            action_label="Review Case",
            expires_at=now + TIP_LIFETIME,
            commit=False,
        )
        created += 1

    tip = random.choice(LEGAL_TIPS)
    create_notification(
        db,
        user_id=user_id,
        type="legal_tip",
        title=tip["title"],
        message=tip["message"],
        priority="low",
        category=tip["category"],
        action_url="/dashboard",
        action_label="Learn More",
        expires_at=now + TIP_LIFETIME,
        commit=False,
    )
    created += 1

    db.commit()
    logger.info(
        "notification.smart.generated",
        extra={"event": "notification.smart.generated", "user_id": user_id, "created_count": created},
    )
    return created
