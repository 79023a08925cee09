from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.schemas.analytics import DashboardStats, LeaderboardEntry, TestStatistics
from app.schemas.response import APIResponse
from app.schemas.user import UserContext
from app.services.analytics import analytics_service
from app.utils import deps

router = APIRouter()

@router.get("/dashboard", response_model=APIResponse[DashboardStats])
def get_dashboard(
    *,
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    stats = analytics_service.get_dashboard(db, current_user_context=context)
    return APIResponse(message="Dashboard statistics retrieved successfully", data=stats)


@router.get("/tests", response_model=APIResponse[List[TestStatistics]])
def get_test_statistics(
    *,
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    statistics = analytics_service.get_test_statistics(db, current_user_context=context)
    return APIResponse(message="Test statistics retrieved successfully", data=statistics)


@router.get("/leaderboard/{test_id}", response_model=APIResponse[List[LeaderboardEntry]])
def get_leaderboard(
    *,
    db: Session = Depends(deps.get_db),
    test_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    leaderboard = analytics_service.get_leaderboard(db, test_id=test_id, current_user_context=context)
    return APIResponse(message="Leaderboard retrieved successfully", data=leaderboard)
