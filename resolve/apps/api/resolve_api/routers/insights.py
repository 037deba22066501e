"""Personalised legal insights for the dashboard and for one case."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from resolve_api.auth.session_auth import AuthUser, get_current_user, get_owned_or_404
from resolve_api.context import case_id_var
from resolve_api.db.models import Case
from resolve_api.db.session import get_db
from resolve_api.schemas import DashboardInsights, LegalInsight
from resolve_api.services import insights_service

router = APIRouter(tags=["insights"])


@router.get("/api/insights", response_model=DashboardInsights)
async def get_dashboard_insights(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DashboardInsights:
    """Insights about the caller's own open cases, grouped for the dashboard."""
    return await insights_service.generate_personalized_insights(db, user.id)


@router.get("/api/cases/{case_id}/insights", response_model=list[LegalInsight])
async def get_case_insights(
    case_id: int,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[LegalInsight]:
    case = get_owned_or_404(db, Case, case_id, user, "case")
    case_id_var.set(str(case.id))
    return insights_service.get_case_insights(case)
