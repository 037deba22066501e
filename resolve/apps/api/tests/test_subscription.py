"""Unit tests for strategy pack credits and monthly plan state."""

from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from resolve_api.billing import subscription
from resolve_api.db.models import User

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _user(**fields) -> User:
    defaults = {
        "id": "u-1",
        "role": "user",
        "plan_type": "none",
        "subscription_status": "none",
        "strategy_packs_remaining": 0,
    }
    defaults.update(fields)
    return User(**defaults)


def test_active_subscription_requires_unexpired_period():
    active = _user(
        plan_type="monthly_subscription",
        subscription_status="active",
        subscription_expires_at=NOW + timedelta(days=1),
    )
    expired = _user(
        plan_type="monthly_subscription",
        subscription_status="active",
        subscription_expires_at=NOW - timedelta(seconds=1),
    )
    past_due = _user(
        plan_type="monthly_subscription",
        subscription_status="past_due",
        subscription_expires_at=NOW + timedelta(days=1),
    )

    assert subscription.has_active_subscription(active, NOW) is True
    assert subscription.has_active_subscription(expired, NOW) is False
    assert subscription.has_active_subscription(past_due, NOW) is False


def test_naive_expiry_is_treated_as_utc():
    user = _user(
        plan_type="monthly_subscription",
        subscription_status="active",
        subscription_expires_at=(NOW + timedelta(hours=1)).replace(tzinfo=None),
    )
    assert subscription.has_active_subscription(user, NOW) is True


def test_consume_credit():
    user = _user(strategy_packs_remaining=2)

    assert subscription.consume_strategy_credit(user) is True
    assert user.strategy_packs_remaining == 1


def test_consume_without_credit_is_refused():
    user = _user()
    assert subscription.consume_strategy_credit(user) is False
    assert subscription.can_generate_strategy(user) is False


def test_grant_strategy_pack(db_session: Session):
    db_session.add(_user(id="buyer", email="buyer@example.com"))
    db_session.commit()

    user = subscription.grant_strategy_pack(db_session, "buyer", "pi_1")

    assert user.strategy_packs_remaining == 1
    assert user.has_initial_strategy_pack is True
    assert user.plan_type == "strategy_pack"
    assert subscription.grant_strategy_pack(db_session, "nobody") is None


def test_grant_keeps_monthly_plan_type(db_session: Session):
    db_session.add(_user(id="subscriber", plan_type="monthly_subscription"))
    db_session.commit()

    user = subscription.grant_strategy_pack(db_session, "subscriber")

    assert user.plan_type == "monthly_subscription"


def test_activate_resets_period_from_now():
    user = _user(subscription_expires_at=NOW + timedelta(days=20))

    subscription.activate_monthly(user, "sub_1", now=NOW)

    assert user.plan_type == "monthly_subscription"
    assert user.subscription_status == "active"
    assert user.subscription_expires_at == NOW + subscription.MONTHLY_PERIOD
    assert user.stripe_subscription_id == "sub_1"


def test_find_user_lookup_order(db_session: Session):
    db_session.add(_user(id="by-sub", stripe_subscription_id="sub_9"))
    db_session.add(_user(id="by-customer", stripe_customer_id="cus_9"))
    db_session.commit()

    assert subscription.find_user_for_subscription(db_session, subscription_id="sub_9", customer_id="cus_9").id == "by-sub"
    assert subscription.find_user_for_subscription(db_session, subscription_id="sub_x", customer_id="cus_9").id == "by-customer"
    assert subscription.find_user_for_subscription(db_session, user_id="by-sub").id == "by-sub"
    assert subscription.find_user_for_subscription(db_session, subscription_id="sub_x") is None
