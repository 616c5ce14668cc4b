from fastapi import APIRouter, Depends
from sqlmodel import Session

from patentflow.api import deps
from patentflow.db.session import get_db
from patentflow.schemas.auth import SessionUser
from patentflow.schemas.insight import InsightRequest, InsightResponse
from patentflow.services.insights import InsightProvider, ask_project_insights, get_insight_provider

router = APIRouter()


@router.post("", response_model=InsightResponse)
def ask_insights(
    request: InsightRequest,
    db: Session = Depends(get_db),
    provider: InsightProvider = Depends(get_insight_provider),
    current_user: SessionUser = Depends(deps.require_manager),
):
    """
    Ask a natural-language question about all projects.

    Returns either a text answer or `[{name, value}]` bar-chart data.
    """
    return ask_project_insights(db, request.query, provider)
