"""SQLAlchemy ORM Models for Resolve."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    BOOLEAN,
    FLOAT,
    INTEGER,
    JSON,
    NUMERIC,
    TEXT,
    TIMESTAMP,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ROLES = ("user", "moderator", "admin")


def utcnow() -> datetime:
    """Timezone-aware current time (UTC)."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Application user, keyed by the Supabase auth user UUID."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True, unique=True)
    first_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    role: Mapped[str] = mapped_column(TEXT, nullable=False, default="user")

    # Billing
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    subscription_status: Mapped[str] = mapped_column(TEXT, nullable=False, default="none")
    plan_type: Mapped[str] = mapped_column(TEXT, nullable=False, default="none")
    strategy_packs_remaining: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    has_initial_strategy_pack: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    subscription_expires_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Application(Base):
    """Public intake form submission (lead)."""

    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    full_name: Mapped[str] = mapped_column(TEXT, nullable=False)
    phone: Mapped[str] = mapped_column(TEXT, nullable=False)
    email: Mapped[str] = mapped_column(TEXT, nullable=False)
    trade: Mapped[str] = mapped_column(TEXT, nullable=False)
    state: Mapped[str] = mapped_column(TEXT, nullable=False)
    issue_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    amount: Mapped[Optional[Decimal]] = mapped_column(NUMERIC(12, 2), nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    description: Mapped[str] = mapped_column(TEXT, nullable=False)

    # pending -> approved | rejected
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="pending")
    # submitted, ai_reviewed, payment_pending, intake_pending, pdf_generation, dashboard_access
    workflow_stage: Mapped[str] = mapped_column(TEXT, nullable=False, default="submitted")
    payment_status: Mapped[str] = mapped_column(TEXT, nullable=False, default="pending")
    ai_analysis: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_applications_user", "user_id"),
        Index("idx_applications_status", "status"),
    )


class Case(Base):
    """Paid, actionable dispute owned by exactly one user."""

    __tablename__ = "cases"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    application_id: Mapped[Optional[int]] = mapped_column(INTEGER, nullable=True)
    title: Mapped[str] = mapped_column(TEXT, nullable=False)
    case_number: Mapped[str] = mapped_column(TEXT, nullable=False)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="active")
    issue_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    amount: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    client_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    priority: Mapped[str] = mapped_column(TEXT, nullable=False, default="medium")
    ai_analysis: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    strategy_pack: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    next_action: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    next_action_due: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    progress: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)

    # Mood tracking
    mood_score: Mapped[int] = mapped_column(INTEGER, nullable=False, default=5)
    stress_level: Mapped[str] = mapped_column(TEXT, nullable=False, default="medium")
    urgency_feeling: Mapped[str] = mapped_column(TEXT, nullable=False, default="moderate")
    confidence_level: Mapped[int] = mapped_column(INTEGER, nullable=False, default=5)
    mood_notes: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    last_mood_update: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    # Outcome (set at closure)
    outcome: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    resolution_method: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    amount_recovered: Mapped[Optional[Decimal]] = mapped_column(NUMERIC(12, 2), nullable=True)
    client_satisfaction_score: Mapped[Optional[int]] = mapped_column(INTEGER, nullable=True)
    outcome_notes: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("case_number", name="uq_cases_case_number"),
        Index("idx_cases_user", "user_id"),
    )


class Contract(Base):
    """Contract-drafting record; same ownership shape as Case."""

    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(TEXT, nullable=False)
    contract_number: Mapped[str] = mapped_column(TEXT, nullable=False)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="draft")
    client_name: Mapped[str] = mapped_column(TEXT, nullable=False)
    project_description: Mapped[str] = mapped_column(TEXT, nullable=False)
    value: Mapped[Optional[Decimal]] = mapped_column(NUMERIC(12, 2), nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    terms: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    ai_analysis: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    next_action: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    next_action_due: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    version: Mapped[int] = mapped_column(INTEGER, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("contract_number", name="uq_contracts_contract_number"),
        Index("idx_contracts_user", "user_id"),
    )


class Document(Base):
    """Stored file reference (uploaded or generated)."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(TEXT, ForeignKey("users.id"), nullable=False)
    case_id: Mapped[Optional[int]] = mapped_column(
        INTEGER, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True
    )
    contract_id: Mapped[Optional[int]] = mapped_column(
        INTEGER, ForeignKey("contracts.id", ondelete="SET NULL"), nullable=True
    )
    filename: Mapped[str] = mapped_column(TEXT, nullable=False)
    original_name: Mapped[str] = mapped_column(TEXT, nullable=False)
    file_type: Mapped[str] = mapped_column(TEXT, nullable=False)  # document | photo
    mime_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    file_size: Mapped[int] = mapped_column(INTEGER, nullable=False)
    upload_path: Mapped[str] = mapped_column(TEXT, nullable=False)
    # evidence, contract, correspondence, generated, photos
    category: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    tags: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    version: Mapped[int] = mapped_column(INTEGER, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_documents_user", "user_id"),
        Index("idx_documents_case", "case_id"),
        Index("idx_documents_contract", "contract_id"),
    )


class TimelineEvent(Base):
    """Dated note attached to a case or contract."""

    __tablename__ = "timeline_events"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    case_id: Mapped[Optional[int]] = mapped_column(
        INTEGER, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True
    )
    contract_id: Mapped[Optional[int]] = mapped_column(
        INTEGER, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=True
    )
    # case_created, case_updated, document_uploaded, strategy_generated, ...
    event_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    title: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    event_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    is_completed: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_timeline_case", "case_id"),
        Index("idx_timeline_contract", "contract_id"),
    )


class CalendarIntegration(Base):
    """Linked external calendar credentials (google | outlook)."""

    __tablename__ = "calendar_integrations"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    provider: Mapped[str] = mapped_column(TEXT, nullable=False)
    access_token: Mapped[str] = mapped_column(TEXT, nullable=False)
    refresh_token: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    token_expires_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    calendar_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (Index("idx_calendar_integrations_user", "user_id"),)


class CalendarEvent(Base):
    """Local mirror of a calendar event, optionally synced to a provider."""

    __tablename__ = "calendar_events"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    case_id: Mapped[Optional[int]] = mapped_column(
        INTEGER, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True
    )
    contract_id: Mapped[Optional[int]] = mapped_column(
        INTEGER, ForeignKey("contracts.id", ondelete="SET NULL"), nullable=True
    )
    integration_id: Mapped[Optional[int]] = mapped_column(
        INTEGER, ForeignKey("calendar_integrations.id", ondelete="SET NULL"), nullable=True
    )
    external_event_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    title: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    start_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    attendees: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    reminder_minutes: Mapped[int] = mapped_column(INTEGER, nullable=False, default=15)
    is_synced: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    sync_status: Mapped[str] = mapped_column(TEXT, nullable=False, default="pending")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (Index("idx_calendar_events_user_start", "user_id", "start_time"),)


class Notification(Base):
    """User-facing alert polled by the dashboard."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    # new_application, deadline, document_ready, action_required, legal_tip, ...
    type: Mapped[str] = mapped_column(TEXT, nullable=False)
    title: Mapped[str] = mapped_column(TEXT, nullable=False)
    message: Mapped[str] = mapped_column(TEXT, nullable=False)
    priority: Mapped[str] = mapped_column(TEXT, nullable=False, default="medium")
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="unread")
    category: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    action_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    action_label: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    related_id: Mapped[Optional[int]] = mapped_column(INTEGER, nullable=True)
    related_type: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    archived_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (Index("idx_notifications_user_status", "user_id", "status"),)


class DocumentTag(Base):
    """Controlled vocabulary entry for document classification."""

    __tablename__ = "document_tags"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    color: Mapped[str] = mapped_column(TEXT, nullable=False, default="#3B82F6")
    # legal, financial, evidence, communication, administrative
    category: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    is_system: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    usage_count: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    created_by: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (UniqueConstraint("name", name="uq_document_tags_name"),)


class DocumentTagAssignment(Base):
    """Many-to-many link between documents and tags."""

    __tablename__ = "document_tag_assignments"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        INTEGER, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    tag_id: Mapped[int] = mapped_column(
        INTEGER, ForeignKey("document_tags.id", ondelete="CASCADE"), nullable=False
    )
    assigned_by: Mapped[str] = mapped_column(TEXT, nullable=False)  # "ai" or user id
    confidence: Mapped[float] = mapped_column(FLOAT, nullable=False, default=1.0)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("document_id", "tag_id", name="uq_tag_assignment_document_tag"),
    )


class AITagSuggestion(Base):
    """Cached AI tag suggestions for a document."""

    __tablename__ = "ai_tag_suggestions"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        INTEGER, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    suggested_tags: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    document_analysis: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    processing_status: Mapped[str] = mapped_column(TEXT, nullable=False, default="completed")
    processed_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (Index("idx_ai_tag_suggestions_document", "document_id"),)


class StripeWebhookEvent(Base):
    """Processed Stripe webhook events (dedup by event id)."""

    __tablename__ = "stripe_webhook_events"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    event_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    # processing -> done | failed
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="processing")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (UniqueConstraint("event_id", name="uq_stripe_webhook_events_event_id"),)
