"""Personalised legal insights for the dashboard and for a single case.

The model is asked for up to five insights about the caller's open cases.
When it is unavailable or returns nothing usable, insights are derived from
case deadlines and activity instead. A user with no open cases gets the
static set.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from resolve_api.db.models import Case, Contract, as_utc, utcnow
from resolve_api.schemas import DashboardInsights, LegalInsight
from resolve_api.services.ai_generation import get_openai_client, request_json_completion
from resolve_api.services.notification_service import (
    IDLE_CASE_DAYS,
    PRIORITY_ORDER,
    days_until_due,
    deadline_priority,
)

logger = logging.getLogger(__name__)

INSIGHTS_TEMPERATURE = 0.7
AI_INSIGHT_LIMIT = 5
INSIGHT_LIFETIME = timedelta(days=7)
DESCRIPTION_PREVIEW_CHARS = 200

URGENT_ALERT_LIMIT = 3
CASE_ANALYSIS_LIMIT = 2
INDUSTRY_TREND_LIMIT = 2
LEGAL_TIP_LIMIT = 3
ACTION_ITEM_LIMIT = 4

INSIGHTS_SYSTEM_PROMPT = (
    "You are a legal AI assistant for Australian tradespeople. You turn a tradie's "
    "open payment disputes into short, practical insights grounded in Australian "
    "security of payment legislation. Respond only with a JSON object."
)

INDUSTRY_TRENDS = (
    LegalInsight(
        id="trend-1",
        type="industry_trend",
        title="SOPA Payment Times Decreasing",
        content=(
            "Payment times under security of payment legislation have improved, with more "
            "contractors receiving payment within statutory timeframes."
        ),
        category="payment_disputes",
        metadata={"legislation": "Security of Payment Act"},
    ),
    LegalInsight(
        id="trend-2",
        type="industry_trend",
        title="Contract Disputes Rising",
        content=(
            "Contract variation disputes are increasing. Ensure all variations are documented "
            "in writing and signed before work commences."
        ),
        category="contract_issues",
        actionable=True,
    ),
)

LEGAL_TIPS = (
    LegalInsight(
        id="tip-1",
        type="legal_tip",
        title="Document Everything",
        content=(
            "Always keep detailed records of variations, delays and additional work. "
            "Photos with timestamps are powerful evidence in disputes."
        ),
        actionable=True,
    ),
    LegalInsight(
        id="tip-2",
        type="legal_tip",
        title="SOPA Notice Timing",
        content=(
            "Payment claims under security of payment laws must be served within specified "
            "timeframes. Missing a deadline can invalidate your claim entirely."
        ),
        priority="high",
        category="payment_disputes",
        actionable=True,
        metadata={"legislation": "Security of Payment Act"},
    ),
    LegalInsight(
        id="tip-3",
        type="legal_tip",
        title="Retention Release",
        content=(
            "You can usually claim retention money after practical completion. "
            "Set calendar reminders for retention release dates."
        ),
        category="payment_disputes",
        actionable=True,
    ),
)


def fallback_insights() -> DashboardInsights:
    """Static dashboard used when there is nothing case-specific to say."""
    return DashboardInsights(
        urgent_alerts=[
            LegalInsight(
                id="alert-1",
                type="deadline_alert",
                title="Review Payment Terms",
                content="Ensure all new contracts include clear payment terms and penalty clauses for late payments.",
                category="contract_issues",
                actionable=True,
            )
        ],
        case_analysis=[
            LegalInsight(
                id="analysis-1",
                type="case_analysis",
                title="Stay Proactive",
                content=(
                    "Regular case reviews help identify potential issues early. "
                    "Create a new case for any payment or contract concern."
                ),
                priority="low",
                actionable=True,
            )
        ],
        industry_trends=list(INDUSTRY_TRENDS),
        legal_tips=list(LEGAL_TIPS),
        action_items=[
            LegalInsight(
                id="action-1",
                type="action_required",
                title="Update Contact Information",
                content="Ensure your profile has current contact details for important legal notifications.",
                priority="low",
                actionable=True,
            )
        ],
        source="fallback",
    )


def issue_category(issue_type: Optional[str]) -> str:
    """Map a free-form issue type onto an insight category."""
    issue = (issue_type or "").lower()
    if "payment" in issue:
        return "payment_disputes"
    if "contract" in issue or "variation" in issue:
        return "contract_issues"
    if "regulat" in issue or "complian" in issue or "licen" in issue:
        return "regulatory_compliance"
    return "general"


def _amount_metadata(case: Case) -> dict[str, Any]:
    return {"amount": case.amount} if case.amount else {}


# ============================================================================
# Rule-based insights
# ============================================================================


def _deadline_insight(case: Case, now: datetime) -> Optional[LegalInsight]:
    if case.next_action_due is None:
        return None
    days = days_until_due(case.next_action_due, now)
    rule = deadline_priority(days)
    if rule is None:
        return None

    priority, title, template = rule
    return LegalInsight(
        id=f"deadline-{case.id}",
        type="deadline_alert",
        title=title,
        content=template.format(title=case.title, days=days),
        priority=priority,
        category=issue_category(case.issue_type),
        actionable=True,
        expires_at=as_utc(case.next_action_due),
        related_case_id=case.id,
        metadata={"daysUntil": days, **_amount_metadata(case)},
    )


def _next_steps_insight(case: Case) -> LegalInsight:
    issue = case.issue_type.replace("_", " ")
    content = f"Based on your {issue} case, consider these actions to strengthen your position."
    if case.next_action:
        content += f" Your next recorded step is: {case.next_action}."
    return LegalInsight(
        id=f"case-insight-{case.id}",
        type="case_analysis",
        title="Next Steps Recommended",
        content=content,
        category=issue_category(case.issue_type),
        actionable=True,
        related_case_id=case.id,
        metadata=_amount_metadata(case),
    )


def _idle_insight(case: Case, now: datetime) -> Optional[LegalInsight]:
    idle_days = (now - as_utc(case.updated_at or case.created_at)).days
    if idle_days < IDLE_CASE_DAYS:
        return None
    return LegalInsight(
        id=f"idle-{case.id}",
        type="action_required",
        title="Case Action Needed",
        content=f'Your case "{case.title}" has had no activity for {idle_days} days. Consider taking the next step.',
        category=issue_category(case.issue_type),
        actionable=True,
        related_case_id=case.id,
        metadata={"idleDays": idle_days},
    )


def rule_insights(cases: list[Case], now: datetime) -> list[LegalInsight]:
    insights: list[LegalInsight] = []
    for case in cases:
        if case.status == "resolved":
            continue
        for insight in (_deadline_insight(case, now), _next_steps_insight(case), _idle_insight(case, now)):
            if insight is not None:
                insights.append(insight)
    return insights


# ============================================================================
# Model insights
# ============================================================================


def _insights_prompt(cases: list[Case], contracts: list[Contract]) -> str:
    case_data = [
        {
            "issueType": case.issue_type,
            "amount": case.amount,
            "status": case.status,
            "nextAction": case.next_action,
            "nextActionDue": as_utc(case.next_action_due).isoformat() if case.next_action_due else None,
            "description": (case.description or "")[:DESCRIPTION_PREVIEW_CHARS],
        }
        for case in cases
    ]
    contract_data = [
        {
            "status": contract.status,
            "value": str(contract.value) if contract.value is not None else None,
            "endDate": as_utc(contract.end_date).isoformat() if contract.end_date else None,
        }
        for contract in contracts
    ]
    return f"""Analyse this tradesperson's cases and contracts and generate personalised legal insights.

Cases: {json.dumps(case_data, indent=2)}
Contracts: {json.dumps(contract_data, indent=2)}

Return JSON with this structure:
{{
  "insights": [
    {{
      "type": "deadline_alert|case_analysis|action_required",
      "title": "Brief insight title",
      "content": "Actionable insight content (2-3 sentences)",
      "priority": "low|medium|high|critical",
      "category": "payment_disputes|contract_issues|regulatory_compliance|general",
      "actionable": true,
      "metadata": {{"amount": "if relevant", "daysUntil": 0, "legislation": "relevant law if applicable"}}
    }}
  ]
}}

Focus on payment deadlines and security of payment requirements, contract compliance,
regulatory deadlines, case-specific recommendations and risk.
Limit to the {AI_INSIGHT_LIMIT} most relevant insights."""


async def generate_ai_insights(cases: list[Case], contracts: list[Contract], now: datetime) -> list[LegalInsight]:
    """Model insights for the given cases. Empty when AI is unavailable or fails."""
    client = get_openai_client()
    if client is None or not cases:
        return []

    try:
        raw = await request_json_completion(
            client,
            _insights_prompt(cases, contracts),
            system_prompt=INSIGHTS_SYSTEM_PROMPT,
            temperature=INSIGHTS_TEMPERATURE,
        )
    except Exception as e:
        logger.error(
            "insights.ai.fallback",
            extra={"event": "insights.ai.fallback", "error_type": type(e).__name__},
        )
        return []

    items = raw.get("insights")
    if not isinstance(items, list):
        return []

    stamp = int(now.timestamp() * 1000)
    insights: list[LegalInsight] = []
    for index, item in enumerate(items[:AI_INSIGHT_LIMIT]):
        if not isinstance(item, dict):
            continue
        metadata = item.get("metadata")
        try:
            insights.append(
                LegalInsight.model_validate(
                    {
                        **item,
                        "id": f"ai-{stamp}-{index}",
                        "metadata": metadata if isinstance(metadata, dict) else {},
                        "expiresAt": now + INSIGHT_LIFETIME,
                    }
                )
            )
        except ValidationError:
            logger.warning(
                "insights.ai.item_rejected",
                extra={"event": "insights.ai.item_rejected", "index": index},
            )
    return insights


# ============================================================================
# Entry points
# ============================================================================


def _of_type(insights: list[LegalInsight], kind: str) -> list[LegalInsight]:
    return [insight for insight in insights if insight.type == kind]


def group_insights(insights: list[LegalInsight], source: str) -> DashboardInsights:
    urgent = sorted(_of_type(insights, "deadline_alert"), key=lambda i: PRIORITY_ORDER[i.priority], reverse=True)
    return DashboardInsights(
        urgent_alerts=urgent[:URGENT_ALERT_LIMIT],
        case_analysis=_of_type(insights, "case_analysis")[:CASE_ANALYSIS_LIMIT],
        industry_trends=list(INDUSTRY_TRENDS[:INDUSTRY_TREND_LIMIT]),
        legal_tips=list(LEGAL_TIPS[:LEGAL_TIP_LIMIT]),
        action_items=_of_type(insights, "action_required")[:ACTION_ITEM_LIMIT],
        source=source,
    )


async def generate_personalized_insights(
    db: Session,
    user_id: str,
    now: Optional[datetime] = None,
) -> DashboardInsights:
    """Dashboard insights for one user's open cases. Never raises on AI failure."""
    now = now or utcnow()
    cases = (
        db.query(Case)
        .filter(Case.user_id == user_id, Case.status != "resolved")
        .order_by(Case.created_at.desc(), Case.id.desc())
        .all()
    )
    if not cases:
        return fallback_insights()

    contracts = (
        db.query(Contract)
        .filter(Contract.user_id == user_id)
        .order_by(Contract.created_at.desc(), Contract.id.desc())
        .all()
    )

    insights = await generate_ai_insights(cases, contracts, now)
    source = "openai"
    if not insights:
        insights = rule_insights(cases, now)
        source = "rules"

    logger.info(
        "insights.generated",
        extra={"event": "insights.generated", "source": source, "insight_count": len(insights)},
    )
    return group_insights(insights, source)


def get_case_insights(case: Case, now: Optional[datetime] = None) -> list[LegalInsight]:
    """Insights about one case: next steps, then any deadline or inactivity alert."""
    now = now or utcnow()
    insights = [_next_steps_insight(case)]
    for insight in (_deadline_insight(case, now), _idle_insight(case, now)):
        if insight is not None:
            insights.append(insight)
    return insights
