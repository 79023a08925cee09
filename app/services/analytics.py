from typing import List, Optional
from sqlalchemy.orm import Session

from app.core.constants import AttemptStatusEnum
from app.crud.attempt import attempt as crud_attempt, FINISHED_STATUSES
from app.crud.test import test as crud_test
from app.schemas.analytics import DashboardStats, LeaderboardEntry, TestStatistics
from app.schemas.attempt import Attempt
from app.schemas.user import UserContext
from app.services.test import test_service
from app.utils.permission import PermissionHelper as permission_helper

RECENT_ATTEMPTS_LIMIT = 10
LEADERBOARD_LIMIT = 100


def _rounded(value: Optional[float]) -> Optional[float]:
    return round(float(value), 2) if value is not None else None


class AnalyticsService:

    def get_dashboard(self, db: Session, current_user_context: UserContext) -> DashboardStats:
        permission_helper.require_admin(current_user_context, "Only admins can view analytics.")
        recent = crud_attempt.get_recent(db, limit=RECENT_ATTEMPTS_LIMIT)
        return DashboardStats(
            total_tests=crud_test.count_all(db),
            total_attempts=crud_attempt.count_all(db),
            total_users=crud_attempt.count_distinct_users(db),
            avg_score=round(crud_attempt.get_average_percentage(db)),
            recent_attempts=[Attempt.model_validate(a) for a in recent],
        )

    def get_test_statistics(self, db: Session, current_user_context: UserContext) -> List[TestStatistics]:
        permission_helper.require_admin(current_user_context, "Only admins can view analytics.")
        return [
            TestStatistics(
                test_id=row.test_id,
                title=row.title,
                status=row.status,
                total_attempts=row.total_attempts,
                completed_attempts=row.completed_attempts,
                unique_users=row.unique_users,
                avg_score=_rounded(row.avg_score),
                avg_duration_seconds=_rounded(row.avg_duration_seconds),
                pass_rate=_rounded(row.pass_rate),
            )
            for row in crud_attempt.get_test_statistics(db)
        ]

    def get_leaderboard(self, db: Session, test_id: int, current_user_context: UserContext) -> List[LeaderboardEntry]:
        test = test_service.get_test(db, test_id, current_user_context)

        # Scores a student could not read on the attempt itself stay off their leaderboard.
        statuses = FINISHED_STATUSES
        if not permission_helper.is_admin(current_user_context):
            statuses = [AttemptStatusEnum.GRADED]

        rows = crud_attempt.get_leaderboard(db, test_id=test.id, statuses=statuses, limit=LEADERBOARD_LIMIT)
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=row.user_id,
                best_score=_rounded(row.best_score),
                best_time_seconds=row.best_time_seconds,
                attempt_count=row.attempt_count,
            )
            for rank, row in enumerate(rows, start=1)
        ]


analytics_service = AnalyticsService()
