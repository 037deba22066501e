"""Pydantic schemas for API requests/responses."""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase (web client) or snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartialUpdateModel(CamelModel):
    """Partial update body. Fields listed in non_nullable may be omitted but not sent as null."""

    non_nullable: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_explicit_nulls(self):
        for name in self.non_nullable:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class ORMModel(BaseModel):
    """Response model read from ORM rows."""

    model_config = ConfigDict(from_attributes=True)


Role = Literal["user", "moderator", "admin"]
Priority = Literal["low", "medium", "high", "critical"]


# ============================================================================
# RFC 9457 Problem Details
# ============================================================================


class ProblemDetail(BaseModel):
    """RFC 9457 Problem Details for HTTP API errors.

    RFC 9457: detail can be either a string or a structured object (dict).
    """

    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str | dict[str, Any] = Field(..., description="Human-readable explanation or structured error details")
    instance: Optional[str] = Field(None, description="URI reference identifying the specific occurrence")


# ============================================================================
# Users / Admin
# ============================================================================


class UserResponse(ORMModel):
    """Current user profile."""

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    subscription_status: str
    plan_type: str
    strategy_packs_remaining: int
    subscription_expires_at: Optional[datetime] = None
    created_at: datetime


class ProfileUpdateRequest(CamelModel):
    """Request body for PUT /api/user/profile."""

    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class RoleUpdateRequest(BaseModel):
    """Request body for PUT /api/admin/users/{id}/role.

    Role is validated in the handler so an unknown value yields 400, not 422.
    """

    role: str


class RoleInfo(BaseModel):
    """Role catalogue entry."""

    value: Role
    label: str
    description: str


# ============================================================================
# Applications
# ============================================================================


class ApplicationCreateRequest(CamelModel):
    """Request body for POST /api/applications."""

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=6, max_length=30)
    email: str = Field(
        ...,
        pattern=r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$",
    )
    trade: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=2, max_length=10)
    issue_type: str = Field(..., min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    description: str = Field(..., min_length=1)


class ApplicationStatusRequest(BaseModel):
    """Request body for PUT /api/applications/{id}/status."""

    status: str


class ApplicationResponse(ORMModel):
    """Application row."""

    id: int
    user_id: Optional[str] = None
    full_name: str
    phone: str
    email: str
    trade: str
    state: str
    issue_type: str
    amount: Optional[Decimal] = None
    start_date: Optional[datetime] = None
    description: str
    status: str
    workflow_stage: str
    payment_status: str
    ai_analysis: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Cases
# ============================================================================


class CaseCreateRequest(CamelModel):
    """Request body for POST /api/cases."""

    title: str = Field(..., min_length=1, max_length=200)
    issue_type: str = Field(..., min_length=1, max_length=100)
    amount: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    priority: Priority = "medium"
    application_id: Optional[int] = None
    next_action: Optional[str] = None
    next_action_due: Optional[datetime] = None
    client_name: Optional[str] = Field(None, max_length=200)


class CaseUpdateRequest(PartialUpdateModel):
    """Partial update for PUT /api/cases/{id}. Owner and case number are not updatable."""

    non_nullable: ClassVar[tuple[str, ...]] = ("title", "status", "issue_type", "priority", "progress")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[Literal["active", "resolved", "on_hold"]] = None
    issue_type: Optional[str] = None
    amount: Optional[str] = None
    description: Optional[str] = None
    client_name: Optional[str] = Field(None, max_length=200)
    priority: Optional[Priority] = None
    next_action: Optional[str] = None
    next_action_due: Optional[datetime] = None
    progress: Optional[int] = Field(None, ge=0, le=100)


class CaseMoodRequest(CamelModel):
    """Request body for PUT /api/cases/{id}/mood."""

    mood_score: int = Field(..., ge=1, le=10)
    stress_level: Literal["low", "medium", "high", "critical"] = "medium"
    urgency_feeling: Literal["calm", "moderate", "urgent", "panic"] = "moderate"
    confidence_level: int = Field(5, ge=1, le=10)
    mood_notes: Optional[str] = None


class CaseOutcomeRequest(CamelModel):
    """Request body for PUT /api/cases/{id}/outcome."""

    outcome: Literal["successful", "partial_success", "unsuccessful", "settled", "ongoing"]
    resolution_method: Optional[str] = None
    amount_recovered: Optional[Decimal] = Field(None, ge=0)
    client_satisfaction_score: Optional[int] = Field(None, ge=1, le=10)
    outcome_notes: Optional[str] = None


class CaseResponse(ORMModel):
    """Case row."""

    id: int
    user_id: str
    application_id: Optional[int] = None
    title: str
    case_number: str
    status: str
    issue_type: str
    amount: Optional[str] = None
    description: Optional[str] = None
    client_name: Optional[str] = None
    priority: str
    ai_analysis: Optional[dict[str, Any]] = None
    strategy_pack: Optional[dict[str, Any]] = None
    next_action: Optional[str] = None
    next_action_due: Optional[datetime] = None
    progress: int
    mood_score: int
    stress_level: str
    urgency_feeling: str
    confidence_level: int
    mood_notes: Optional[str] = None
    last_mood_update: Optional[datetime] = None
    outcome: Optional[str] = None
    resolution_method: Optional[str] = None
    amount_recovered: Optional[Decimal] = None
    client_satisfaction_score: Optional[int] = None
    outcome_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class StrategyGenerationResponse(BaseModel):
    """Response for POST /api/cases/{id}/generate-strategy."""

    case_id: int
    strategy: dict[str, Any]
    documents: list["DocumentResponse"]


# ============================================================================
# Contracts
# ============================================================================


class ContractCreateRequest(CamelModel):
    """Request body for POST /api/contracts."""

    title: str = Field(..., min_length=1, max_length=200)
    client_name: str = Field(..., min_length=1, max_length=200)
    project_description: str = Field(..., min_length=1)
    value: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    terms: Optional[dict[str, Any]] = None
    next_action: Optional[str] = None
    next_action_due: Optional[datetime] = None


class ContractUpdateRequest(PartialUpdateModel):
    """Partial update for PUT /api/contracts/{id}."""

    non_nullable: ClassVar[tuple[str, ...]] = ("title", "status", "client_name", "project_description")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[Literal["draft", "final", "signed", "active", "completed"]] = None
    client_name: Optional[str] = None
    project_description: Optional[str] = None
    value: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    next_action: Optional[str] = None
    next_action_due: Optional[datetime] = None


class ContractVersionRequest(CamelModel):
    """Request body for POST /api/contracts/{id}/versions."""

    terms: dict[str, Any]
    change_summary: Optional[str] = None


class ContractResponse(ORMModel):
    """Contract row."""

    id: int
    user_id: str
    title: str
    contract_number: str
    status: str
    client_name: str
    project_description: str
    value: Optional[Decimal] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    terms: Optional[dict[str, Any]] = None
    ai_analysis: Optional[dict[str, Any]] = None
    next_action: Optional[str] = None
    next_action_due: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Documents / Timeline
# ============================================================================


class DocumentResponse(ORMModel):
    """Document row (storage path omitted)."""

    id: int
    user_id: str
    case_id: Optional[int] = None
    contract_id: Optional[int] = None
    filename: str
    original_name: str
    file_type: str
    mime_type: str
    file_size: int
    category: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    version: int
    created_at: datetime


class TimelineEventCreateRequest(CamelModel):
    """Request body for POST /api/timeline."""

    case_id: Optional[int] = None
    contract_id: Optional[int] = None
    event_type: str = Field("note", max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    event_date: Optional[datetime] = None

    @model_validator(mode="after")
    def _exactly_one_parent(self) -> "TimelineEventCreateRequest":
        if (self.case_id is None) == (self.contract_id is None):
            raise ValueError("Exactly one of caseId or contractId is required")
        return self


class TimelineEventResponse(ORMModel):
    """Timeline event row."""

    id: int
    user_id: str
    case_id: Optional[int] = None
    contract_id: Optional[int] = None
    event_type: str
    title: str
    description: Optional[str] = None
    event_date: datetime
    is_completed: bool


# ============================================================================
# Calendar
# ============================================================================


class CalendarIntegrationCreateRequest(CamelModel):
    """Request body for POST /api/calendar/integrations."""

    provider: Literal["google", "outlook"]
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    calendar_id: Optional[str] = None


class CalendarIntegrationResponse(ORMModel):
    """Calendar integration row (tokens never returned)."""

    id: int
    provider: str
    calendar_id: Optional[str] = None
    is_active: bool
    token_expires_at: Optional[datetime] = None
    created_at: datetime


class CalendarEventCreateRequest(CamelModel):
    """Request body for POST /api/calendar/events."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    attendees: Optional[list[str]] = None
    reminder_minutes: int = Field(15, ge=0, le=10080)
    case_id: Optional[int] = None
    contract_id: Optional[int] = None
    integration_id: Optional[int] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "CalendarEventCreateRequest":
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class CalendarEventUpdateRequest(PartialUpdateModel):
    """Partial update for PUT /api/calendar/events/{id}."""

    non_nullable: ClassVar[tuple[str, ...]] = ("title", "start_time", "end_time", "reminder_minutes")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    attendees: Optional[list[str]] = None
    reminder_minutes: Optional[int] = Field(None, ge=0, le=10080)


class CalendarEventResponse(ORMModel):
    """Calendar event row."""

    id: int
    user_id: str
    case_id: Optional[int] = None
    contract_id: Optional[int] = None
    integration_id: Optional[int] = None
    external_event_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    attendees: Optional[list[str]] = None
    reminder_minutes: int
    is_synced: bool
    sync_status: str


# ============================================================================
# Notifications
# ============================================================================


class NotificationResponse(ORMModel):
    """Notification row."""

    id: int
    type: str
    title: str
    message: str
    priority: str
    status: str
    category: Optional[str] = None
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    metadata: Optional[dict[str, Any]] = Field(None, validation_alias="meta")
    expires_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    created_at: datetime


class NotificationSummary(CamelModel):
    """Response for GET /api/notifications/summary."""

    total: int
    unread: int
    critical: int
    high: int
    by_type: dict[str, int]


class NotificationGenerateResponse(BaseModel):
    """Response for POST /api/notifications/generate."""

    created: int


# ============================================================================
# Tags
# ============================================================================


class TagSuggestion(BaseModel):
    """One AI- or rule-proposed tag."""

    tag: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""
    category: str = "administrative"


class DocumentAnalysis(CamelModel):
    """Tag analysis result for a document."""

    summary: str
    document_type: str
    legal_relevance: str
    suggested_tags: list[TagSuggestion] = Field(default_factory=list)


class AnalyzeTagsRequest(BaseModel):
    """Optional text preview used to improve tag suggestions."""

    content: Optional[str] = None


class ApplyTagsRequest(CamelModel):
    """Request body for POST /api/documents/{id}/tags."""

    tag_ids: list[int] = Field(..., min_length=1)
    source: Literal["ai", "manual"] = "manual"


class TagCreateRequest(BaseModel):
    """Request body for POST /api/tags."""

    name: str = Field(..., min_length=1, max_length=50)
    category: Literal["legal", "financial", "evidence", "communication", "administrative"]
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = None


class TagResponse(ORMModel):
    """Document tag row."""

    id: int
    name: str
    color: str
    category: str
    description: Optional[str] = None
    is_system: bool
    usage_count: int


class DocumentTagResponse(BaseModel):
    """Tag assigned to a document."""

    tag: TagResponse
    assigned_by: str
    confidence: float
    created_at: datetime


class TagSuggestionResponse(ORMModel):
    """Stored AI tag suggestion."""

    id: int
    document_id: int
    suggested_tags: list[dict[str, Any]]
    document_analysis: Optional[str] = None
    processing_status: str
    processed_at: datetime


# ============================================================================
# Legal insights
# ============================================================================

InsightType = Literal["deadline_alert", "case_analysis", "industry_trend", "legal_tip", "action_required"]
InsightCategory = Literal["payment_disputes", "contract_issues", "regulatory_compliance", "general"]


class LegalInsight(CamelModel):
    """One dashboard insight, from the model or from the built-in rules."""

    id: str
    type: InsightType
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    priority: Priority = "medium"
    category: InsightCategory = "general"
    actionable: bool = False
    expires_at: Optional[datetime] = None
    related_case_id: Optional[int] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DashboardInsights(CamelModel):
    """Insights for GET /api/insights, grouped the way the dashboard shows them."""

    urgent_alerts: list[LegalInsight] = Field(default_factory=list)
    case_analysis: list[LegalInsight] = Field(default_factory=list)
    industry_trends: list[LegalInsight] = Field(default_factory=list)
    legal_tips: list[LegalInsight] = Field(default_factory=list)
    action_items: list[LegalInsight] = Field(default_factory=list)
    source: Literal["openai", "rules", "fallback"] = "fallback"


# ============================================================================
# Payments
# ============================================================================


class PaymentIntentRequest(CamelModel):
    """Request body for POST /api/create-payment-intent (amount in AUD cents)."""

    amount: int = Field(29900, gt=0, le=10_000_000)
    case_id: Optional[int] = None


class PaymentIntentResponse(CamelModel):
    """Client secret for the hosted payment widget."""

    client_secret: str
    payment_intent_id: str


class SubscriptionResponse(CamelModel):
    """Response for POST /api/create-subscription."""

    subscription_id: str
    client_secret: Optional[str] = None
    status: str


class SubscriptionStatusResponse(CamelModel):
    """Response for GET /api/subscription/status."""

    has_active_subscription: bool
    can_generate_strategy: bool
    plan_type: str
    subscription_status: str
    strategy_packs_remaining: int
    subscription_expires_at: Optional[datetime] = None


StrategyGenerationResponse.model_rebuild()
