"""Webhook dedup gate keyed on the Stripe event id.

Design:
  1. INSERT a 'processing' row; the UNIQUE constraint on event_id lets exactly
     one delivery win under concurrent retries.
  2. On conflict, a row in status 'failed' is re-claimed so Stripe's retry can
     re-run a genuinely failed event; 'processing' or 'done' means duplicate.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resolve_api.db.models import StripeWebhookEvent, utcnow

logger = logging.getLogger(__name__)


def try_acquire_dedup(db: Session, event_id: str, event_type: str) -> bool:
    """Attempt to claim processing rights for a Stripe event.

    Returns:
        True  - first delivery, or a previously failed event was re-claimed
        False - duplicate delivery; the caller ACKs with zero side effects
    """
    db.add(StripeWebhookEvent(event_id=event_id, event_type=event_type, status="processing"))
    try:
        db.commit()
        logger.debug(
            "webhook.dedup.acquired",
            extra={"event": "webhook.dedup.acquired", "stripe_event_id": event_id},
        )
        return True
    except IntegrityError:
        db.rollback()

    reclaimed = (
        db.query(StripeWebhookEvent)
        .filter(StripeWebhookEvent.event_id == event_id, StripeWebhookEvent.status == "failed")
        .update(
            {StripeWebhookEvent.status: "processing", StripeWebhookEvent.updated_at: utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()

    if reclaimed:
        logger.info(
            "webhook.dedup.retry_reclaimed",
            extra={"event": "webhook.dedup.retry_reclaimed", "stripe_event_id": event_id},
        )
        return True

    logger.info(
        "webhook.dedup.duplicate",
        extra={"event": "webhook.dedup.duplicate", "stripe_event_id": event_id},
    )
    return False


def _set_status(db: Session, event_id: str, status: str) -> None:
    db.query(StripeWebhookEvent).filter(StripeWebhookEvent.event_id == event_id).update(
        {StripeWebhookEvent.status: status, StripeWebhookEvent.updated_at: utcnow()},
        synchronize_session=False,
    )
    db.commit()


def mark_dedup_done(db: Session, event_id: str) -> None:
    """Mark the event 'done' after successful business processing."""
    _set_status(db, event_id, "done")


def mark_dedup_failed(db: Session, event_id: str) -> None:
    """Mark the event 'failed' so a Stripe retry can re-process it."""
    _set_status(db, event_id, "failed")
