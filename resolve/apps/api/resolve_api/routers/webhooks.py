"""Stripe webhook handler.

Error taxonomy (retry storm prevention):
  (A) Invalid JSON payload -> 400
  (B) Signature invalid -> 401
  (C) Stripe-Signature header missing -> 400
  (D) Our misconfig (missing webhook secret) -> 500 WEBHOOK_PROVIDER_MISCONFIG
  (F) Internal DB/processing error after verification -> 500 WEBHOOK_INTERNAL_ERROR
  500 is ONLY for (D)(F). Signature mismatch is NEVER 500.

Handled events:
  payment_intent.succeeded           -> +1 strategy pack credit (metadata.type == strategy_pack)
  invoice.paid                       -> monthly plan active for one period
  customer.subscription.updated      -> active: activate; past_due/unpaid: past_due; canceled: cancel
  customer.subscription.deleted      -> cancel
Anything else is acknowledged with 200.
"""

import logging
import uuid
from typing import Any, Optional

import stripe
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from resolve_api.billing import subscription
from resolve_api.billing.stripe_client import construct_webhook_event
from resolve_api.billing.webhook_dedup import mark_dedup_done, mark_dedup_failed, try_acquire_dedup
from resolve_api.config import env
from resolve_api.context import request_id_var
from resolve_api.db.session import get_db
from resolve_api.services import notification_service
from resolve_api.utils.sanitize import payload_hash_bytes, sanitize_str

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


# ============================================================================
# Webhook Problem Details helper
# ============================================================================


def _webhook_problem(
    request: Request,
    status: int,
    *,
    code: str,
    title: str,
    detail: str | None,
    payload_hash: str | None,
    extra: dict | None = None,
) -> JSONResponse:
    """Log once + return RFC 9457 Problem Details response with webhook extensions.

    4xx failures -> warning log.
    5xx failures -> error log + Retry-After: 60 response header.

    Response extensions (beyond RFC 9457 base):
      provider, payload_hash, error_code  (safe; never contain raw payload/secrets)
    """
    request_id = request_id_var.get()
    instance = f"urn:resolve:trace:{request_id or uuid.uuid4()}"

    log_extra: dict = {
        "event": f"webhook.{code.lower()}",
        "provider": "stripe",
        "payload_hash": payload_hash,
        "error_code": code,
    }
    if extra:
        log_extra.update(extra)

    if status >= 500:
        logger.error(code, extra=log_extra)
    else:
        logger.warning(code, extra=log_extra)

    content: dict = {
        "type": f"urn:resolve:webhook:{code.lower()}",
        "title": title,
        "status": status,
        "provider": "stripe",
        "error_code": code,
        "instance": instance,
    }
    if detail is not None:
        content["detail"] = detail
    if payload_hash is not None:
        content["payload_hash"] = payload_hash

    response_headers = {"Content-Type": "application/problem+json"}
    if status >= 500:
        response_headers["Retry-After"] = "60"

    return JSONResponse(status_code=status, content=content, headers=response_headers)


# ============================================================================
# Stripe Webhook Handler
# ============================================================================


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    """Stripe webhook handler: verify, dedup on event id, apply billing state."""
    # ── Step 0: Raw body ingestion ───────────────────────────────────────────
    raw_body: bytes = await request.body()
    payload_hash = payload_hash_bytes(raw_body)

    # ── Step 1: Required header (C -> 400) ───────────────────────────────────
    if not stripe_signature:
        return _webhook_problem(
            request, 400,
            code="WEBHOOK_MISSING_HEADERS",
            title="Missing required webhook headers",
            detail="Stripe-Signature header is absent",
            payload_hash=payload_hash,
        )

    # ── Step 2: Secret (D -> 500 on misconfig) ───────────────────────────────
    try:
        secret = env.get_stripe_webhook_secret()
    except ValueError:
        return _webhook_problem(
            request, 500,
            code="WEBHOOK_PROVIDER_MISCONFIG",
            title="Webhook provider misconfiguration",
            detail="Webhook verification is not properly configured",
            payload_hash=payload_hash,
        )

    # ── Step 3: Signature + JSON (B -> 401, A -> 400) ────────────────────────
    try:
        event = construct_webhook_event(raw_body, stripe_signature, secret)
    except stripe.SignatureVerificationError:
        return _webhook_problem(
            request, 401,
            code="WEBHOOK_SIGNATURE_INVALID",
            title="Webhook signature verification failed",
            detail="Stripe-Signature does not match the payload",
            payload_hash=payload_hash,
        )
    except ValueError:
        return _webhook_problem(
            request, 400,
            code="WEBHOOK_INVALID_JSON",
            title="Invalid JSON payload",
            detail="Request body is not valid JSON",
            payload_hash=payload_hash,
        )

    event_id = event.get("id")
    event_type = event.get("type")
    if not event_id or not event_type:
        return _webhook_problem(
            request, 400,
            code="WEBHOOK_INVALID_PAYLOAD",
            title="Invalid webhook payload",
            detail="Missing required fields: id, type",
            payload_hash=payload_hash,
        )

    logger.info(
        "webhook.received",
        extra={"event": "webhook.received", "stripe_event_id": event_id, "event_type": event_type},
    )

    # ── Step 4: Dedup gate ───────────────────────────────────────────────────
    if not try_acquire_dedup(db, event_id, event_type):
        return {"status": "already_processed"}

    # ── Step 5: Business processing (F -> 500) ───────────────────────────────
    try:
        handled = _process_stripe_event(db, event_type, event["data"]["object"])
        db.commit()
        mark_dedup_done(db, event_id)
    except Exception as exc:
        db.rollback()
        mark_dedup_failed(db, event_id)
        return _webhook_problem(
            request, 500,
            code="WEBHOOK_INTERNAL_ERROR",
            title="Internal processing error",
            detail="An internal error occurred while processing the webhook",
            payload_hash=payload_hash,
            extra={
                "stripe_event_id": event_id,
                "error_type": type(exc).__name__,
                "error_msg": sanitize_str(str(exc)),
            },
        )

    return {"status": "processed" if handled else "ignored"}


def _process_stripe_event(db: Session, event_type: str, obj: Any) -> bool:
    """Dispatch by event type. Returns False for unhandled types."""
    if event_type == "payment_intent.succeeded":
        _handle_payment_intent_succeeded(db, obj)
    elif event_type == "invoice.paid":
        _handle_invoice_paid(db, obj)
    elif event_type == "customer.subscription.updated":
        _handle_subscription_updated(db, obj)
    elif event_type == "customer.subscription.deleted":
        _handle_subscription_deleted(db, obj)
    else:
        logger.info(
            "webhook.event.unhandled",
            extra={"event": "webhook.event.unhandled", "event_type": event_type},
        )
        return False
    return True


def _handle_payment_intent_succeeded(db: Session, intent: Any) -> None:
    metadata = intent.get("metadata") or {}
    if metadata.get("type") != "strategy_pack":
        return

    user_id = metadata.get("user_id")
    if not user_id:
        logger.warning(
            "webhook.payment_intent.no_user",
            extra={"event": "webhook.payment_intent.no_user", "payment_intent_id": intent.get("id")},
        )
        return

    user = subscription.grant_strategy_pack(db, user_id, intent.get("id"))
    if user is None:
        return

    case_id = metadata.get("case_id")
    notification_service.create_notification(
        db,
        user_id=user.id,
        type="payment_received",
        title="Payment received",
        message="Thanks! Your strategy pack credit is ready to use.",
        priority="medium",
        category="billing",
        related_id=int(case_id) if case_id and str(case_id).isdigit() else None,
        related_type="case" if case_id else None,
        action_url=f"/cases/{case_id}" if case_id else "/dashboard",
        action_label="Generate Strategy" if case_id else "Open Dashboard",
        commit=False,
    )


def _invoice_subscription_id(invoice: Any) -> Optional[str]:
    sub = invoice.get("subscription")
    if sub:
        return sub if isinstance(sub, str) else sub.get("id")
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return details.get("subscription")


def _handle_invoice_paid(db: Session, invoice: Any) -> None:
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        return
    user = subscription.find_user_for_subscription(
        db,
        subscription_id=subscription_id,
        customer_id=invoice.get("customer"),
    )
    if user is None:
        logger.warning(
            "webhook.subscriber.missing",
            extra={"event": "webhook.subscriber.missing", "subscription_id": subscription_id},
        )
        return
    subscription.activate_monthly(user, subscription_id)


def _subscriber(db: Session, sub: Any) -> Any:
    metadata = sub.get("metadata") or {}
    user = subscription.find_user_for_subscription(
        db,
        subscription_id=sub.get("id"),
        customer_id=sub.get("customer"),
        user_id=metadata.get("user_id"),
    )
    if user is None:
        logger.warning(
            "webhook.subscriber.missing",
            extra={"event": "webhook.subscriber.missing", "subscription_id": sub.get("id")},
        )
    return user


def _handle_subscription_updated(db: Session, sub: Any) -> None:
    user = _subscriber(db, sub)
    if user is None:
        return

    status = sub.get("status")
    if status == "active":
        subscription.activate_monthly(user, sub.get("id"))
    elif status in ("past_due", "unpaid"):
        user.subscription_status = "past_due"
    elif status == "canceled":
        subscription.cancel_monthly(user)


def _handle_subscription_deleted(db: Session, sub: Any) -> None:
    user = _subscriber(db, sub)
    if user is not None:
        subscription.cancel_monthly(user)
