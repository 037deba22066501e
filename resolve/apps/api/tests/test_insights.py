"""Tests for personalised legal insights.

The OpenAI client is replaced with AsyncMock doubles; no network calls.
"""

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from resolve_api.db.models import Case
from resolve_api.services import insights_service
from resolve_api.services.insights_service import (
    generate_personalized_insights,
    get_case_insights,
    issue_category,
)

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _openai_returning(content: str | None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    )
    return client


def _case(db_session: Session, user_id: str, title: str, **fields) -> Case:
    fields.setdefault("issue_type", "unpaid_payment")
    fields.setdefault("created_at", NOW)
    fields.setdefault("updated_at", NOW)
    case = Case(user_id=user_id, title=title, case_number=f"CASE-{title}", **fields)
    db_session.add(case)
    db_session.commit()
    return case


# ============================================================================
# Dashboard insights
# ============================================================================


@pytest.mark.asyncio
async def test_user_without_cases_gets_static_insights(db_session: Session, make_user):
    user, _ = make_user()

    insights = await generate_personalized_insights(db_session, user.id, now=NOW)

    assert insights.source == "fallback"
    assert [i.title for i in insights.urgent_alerts] == ["Review Payment Terms"]
    assert len(insights.industry_trends) == 2
    assert len(insights.legal_tips) == 3
    assert insights.action_items[0].type == "action_required"


@pytest.mark.asyncio
async def test_rules_derive_deadline_and_idle_insights(db_session: Session, make_user):
    user, _ = make_user()
    due_soon = _case(db_session, user.id, "due-soon", next_action_due=NOW + timedelta(days=2))
    _case(db_session, user.id, "overdue", next_action_due=NOW - timedelta(hours=3))
    idle = _case(db_session, user.id, "idle", updated_at=NOW - timedelta(days=10))
    closed = _case(db_session, user.id, "closed", status="resolved", next_action_due=NOW + timedelta(days=1))

    insights = await generate_personalized_insights(db_session, user.id, now=NOW)

    assert insights.source == "rules"
    assert [i.priority for i in insights.urgent_alerts] == ["critical", "high"]
    assert insights.urgent_alerts[1].related_case_id == due_soon.id
    assert insights.urgent_alerts[1].metadata["daysUntil"] == 2
    assert len(insights.case_analysis) == 2
    assert [i.related_case_id for i in insights.action_items] == [idle.id]
    assert closed.id not in {i.related_case_id for i in insights.urgent_alerts + insights.case_analysis}


@pytest.mark.asyncio
async def test_model_insights_are_grouped_and_stamped(db_session: Session, make_user):
    user, _ = make_user()
    _case(db_session, user.id, "claim")
    raw = {
        "insights": [
            {"type": "deadline_alert", "title": "Serve your claim", "content": "Serve it this week.", "priority": "high"},
            {"type": "case_analysis", "title": "Strong position", "content": "Records look complete."},
            {"type": "not_a_type", "title": "Dropped", "content": "Invalid type."},
            {"type": "action_required", "title": "Upload invoice", "content": "Attach the final invoice.", "metadata": None},
        ]
    }
    client = _openai_returning(json.dumps(raw))

    with patch.object(insights_service, "get_openai_client", return_value=client):
        insights = await generate_personalized_insights(db_session, user.id, now=NOW)

    assert insights.source == "openai"
    assert [i.title for i in insights.urgent_alerts] == ["Serve your claim"]
    assert [i.title for i in insights.case_analysis] == ["Strong position"]
    assert [i.title for i in insights.action_items] == ["Upload invoice"]
    assert insights.action_items[0].metadata == {}
    assert insights.urgent_alerts[0].id.startswith("ai-")
    assert insights.urgent_alerts[0].expires_at == NOW + timedelta(days=7)
    assert client.chat.completions.create.call_args.kwargs["temperature"] == 0.7


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ['{"insights": []}', "not json", '{"insights": "none"}'])
async def test_unusable_model_output_falls_back_to_rules(content: str, db_session: Session, make_user):
    user, _ = make_user()
    _case(db_session, user.id, "claim", next_action_due=NOW + timedelta(days=5))

    with patch.object(insights_service, "get_openai_client", return_value=_openai_returning(content)):
        insights = await generate_personalized_insights(db_session, user.id, now=NOW)

    assert insights.source == "rules"
    assert [i.priority for i in insights.urgent_alerts] == ["medium"]


@pytest.mark.asyncio
async def test_model_error_falls_back_to_rules(db_session: Session, make_user):
    user, _ = make_user()
    _case(db_session, user.id, "claim")
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=RuntimeError("upstream down"))

    with patch.object(insights_service, "get_openai_client", return_value=client):
        insights = await generate_personalized_insights(db_session, user.id, now=NOW)

    assert insights.source == "rules"
    assert insights.case_analysis[0].title == "Next Steps Recommended"


# ============================================================================
# Case insights
# ============================================================================


def test_case_insights_include_next_steps_and_deadline(db_session: Session, make_user):
    user, _ = make_user()
    case = _case(
        db_session,
        user.id,
        "claim",
        amount="$8,000",
        next_action="Serve payment claim",
        next_action_due=NOW + timedelta(hours=12),
    )

    insights = get_case_insights(case, now=NOW)

    assert [i.type for i in insights] == ["case_analysis", "deadline_alert"]
    assert "Serve payment claim" in insights[0].content
    assert insights[0].category == "payment_disputes"
    assert insights[0].metadata == {"amount": "$8,000"}
    assert insights[1].priority == "critical"


@pytest.mark.parametrize(
    "issue_type, category",
    [
        ("unpaid_payment", "payment_disputes"),
        ("variation_dispute", "contract_issues"),
        ("licensing_compliance", "regulatory_compliance"),
        ("defects", "general"),
    ],
)
def test_issue_category(issue_type: str, category: str):
    assert issue_category(issue_type) == category


# ============================================================================
# Endpoints
# ============================================================================


def test_dashboard_endpoint_is_camel_case_and_owner_scoped(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    _, other_headers = make_user()
    due = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    case = create_case(headers, nextActionDue=due)

    mine = test_client.get("/api/insights", headers=headers)
    theirs = test_client.get("/api/insights", headers=other_headers)

    assert mine.status_code == 200
    data = mine.json()
    assert data["source"] == "rules"
    assert data["urgentAlerts"][0]["relatedCaseId"] == case["id"]
    assert {"caseAnalysis", "industryTrends", "legalTips", "actionItems"} <= data.keys()
    assert theirs.json()["source"] == "fallback"


def test_case_insights_endpoint_enforces_ownership(test_client: TestClient, make_user, create_case):
    _, headers = make_user()
    _, other_headers = make_user()
    case = create_case(headers)

    resp = test_client.get(f"/api/cases/{case['id']}/insights", headers=headers)

    assert resp.status_code == 200
    assert resp.json()[0]["title"] == "Next Steps Recommended"
    assert resp.json()[0]["relatedCaseId"] == case["id"]
    assert test_client.get(f"/api/cases/{case['id']}/insights", headers=other_headers).status_code == 403
    assert test_client.get("/api/cases/999999/insights", headers=headers).status_code == 404


def test_insights_require_authentication(test_client: TestClient):
    assert test_client.get("/api/insights").status_code == 401
