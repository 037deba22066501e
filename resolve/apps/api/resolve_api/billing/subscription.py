"""Strategy pack credits and monthly plan state on the users row.

Plans:
- strategy_pack: one-off $299 purchase, grants one generation credit
- monthly_subscription: $49/month, unlimited generation while active

Callers own the transaction; functions here mutate rows and leave commit to
the caller.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from resolve_api.db.models import User, as_utc, utcnow

logger = logging.getLogger(__name__)

MONTHLY_PERIOD = timedelta(days=30)


def has_active_subscription(user: User, now: Optional[datetime] = None) -> bool:
    """Monthly plan with status active and an unexpired period."""
    if user.plan_type != "monthly_subscription" or user.subscription_status != "active":
        return False
    expires_at = as_utc(user.subscription_expires_at)
    return expires_at is not None and expires_at > (now or utcnow())


def can_generate_strategy(user: User, now: Optional[datetime] = None) -> bool:
    return has_active_subscription(user, now) or user.strategy_packs_remaining > 0


def subscription_status(user: User) -> dict:
    """Payload for GET /api/subscription/status."""
    return {
        "has_active_subscription": has_active_subscription(user),
        "can_generate_strategy": can_generate_strategy(user),
        "plan_type": user.plan_type,
        "subscription_status": user.subscription_status,
        "strategy_packs_remaining": user.strategy_packs_remaining,
        "subscription_expires_at": as_utc(user.subscription_expires_at),
    }


def consume_strategy_credit(user: User) -> bool:
    """Use one strategy pack credit unless the monthly plan covers generation.

    Returns:
        True if a credit was consumed
    """
    if has_active_subscription(user):
        return False
    if user.strategy_packs_remaining <= 0:
        return False

    user.strategy_packs_remaining -= 1
    logger.info(
        "billing.credit.consumed",
        extra={
            "event": "billing.credit.consumed",
            "user_id": user.id,
            "remaining": user.strategy_packs_remaining,
        },
    )
    return True


def grant_strategy_pack(db: Session, user_id: str, payment_intent_id: Optional[str] = None) -> Optional[User]:
    """Add one strategy pack credit after a confirmed payment."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.warning(
            "billing.grant.user_missing",
            extra={"event": "billing.grant.user_missing", "user_id": user_id},
        )
        return None

    user.strategy_packs_remaining += 1
    user.has_initial_strategy_pack = True
    if user.plan_type == "none":
        user.plan_type = "strategy_pack"

    logger.info(
        "billing.strategy_pack.granted",
        extra={
            "event": "billing.strategy_pack.granted",
            "user_id": user.id,
            "payment_intent_id": payment_intent_id,
            "remaining": user.strategy_packs_remaining,
        },
    )
    return user


def find_user_for_subscription(
    db: Session,
    *,
    subscription_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Optional[User]:
    """Locate the subscriber by subscription id, then customer id, then metadata user id."""
    if subscription_id:
        user = db.query(User).filter(User.stripe_subscription_id == subscription_id).first()
        if user is not None:
            return user
    if customer_id:
        user = db.query(User).filter(User.stripe_customer_id == customer_id).first()
        if user is not None:
            return user
    if user_id:
        return db.query(User).filter(User.id == user_id).first()
    return None


def activate_monthly(user: User, subscription_id: Optional[str] = None, now: Optional[datetime] = None) -> None:
    """Mark the monthly plan active for one period from now.

    invoice.paid and customer.subscription.updated both arrive for a renewal,
    so the period is reset rather than extended.
    """
    start = now or utcnow()

    user.plan_type = "monthly_subscription"
    user.subscription_status = "active"
    user.subscription_expires_at = start + MONTHLY_PERIOD
    if subscription_id:
        user.stripe_subscription_id = subscription_id

    logger.info(
        "billing.subscription.activated",
        extra={
            "event": "billing.subscription.activated",
            "user_id": user.id,
            "expires_at": user.subscription_expires_at.isoformat(),
        },
    )


def cancel_monthly(user: User) -> None:
    user.subscription_status = "canceled"
    logger.info(
        "billing.subscription.canceled",
        extra={"event": "billing.subscription.canceled", "user_id": user.id},
    )
