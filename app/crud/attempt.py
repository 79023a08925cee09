from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import and_, case, distinct, func
from sqlalchemy.orm import Session, selectinload

from app.core.constants import AttemptStatusEnum, MANUAL_GRADED_TYPES
from app.crud.base import CRUDBase
from app.models.attempt import Attempt
from app.models.attempt_answer import AttemptAnswer
from app.models.question import Question
from app.models.test import Test
from app.schemas.attempt import AttemptCreate

FINISHED_STATUSES = [AttemptStatusEnum.SUBMITTED, AttemptStatusEnum.GRADED]

class CRUDAttempt(CRUDBase[Attempt, AttemptCreate, AttemptCreate]):

    def _query_with_relationships(self, db: Session):
        return db.query(Attempt).options(
            selectinload(Attempt.test),
            selectinload(Attempt.answers).selectinload(AttemptAnswer.question).selectinload(Question.options),
        )

    def get(self, db: Session, id: int) -> Optional[Attempt]:
        return self._query_with_relationships(db).filter(Attempt.id == id).first()

    def get_for_update(self, db: Session, id: int) -> Optional[Attempt]:
        """Row-locks the attempt for the rest of the transaction (no-op on SQLite)."""
        return db.query(Attempt).filter(Attempt.id == id).with_for_update().populate_existing().first()

    def get_multi_filtered(self, db: Session, *, user_id: Optional[str] = None, test_id: Optional[int] = None,
                           skip: int = 0, limit: int = 100) -> List[Attempt]:
        query = self._query_with_relationships(db)
        if user_id is not None:
            query = query.filter(Attempt.user_id == user_id)
        if test_id is not None:
            query = query.filter(Attempt.test_id == test_id)
        return query.order_by(Attempt.started_at.desc(), Attempt.id.desc()).offset(skip).limit(limit).all()

    def count_by_user_and_test(self, db: Session, *, user_id: str, test_id: int) -> int:
        return (
            db.query(func.count(Attempt.id))
            .filter(Attempt.user_id == user_id, Attempt.test_id == test_id)
            .scalar()
        ) or 0

    def transition_status(self, db: Session, *, attempt_id: int, expected: AttemptStatusEnum,
                          new: AttemptStatusEnum, values: Optional[Dict[str, Any]] = None,
                          require_scored: bool = False) -> bool:
        """Compare-and-swap on status: applies only if the row is still in `expected`."""
        query = db.query(Attempt).filter(Attempt.id == attempt_id, Attempt.status == expected)
        if require_scored:
            query = query.filter(Attempt.graded_at.isnot(None))
        update_values = {Attempt.status: new}
        for field, value in (values or {}).items():
            update_values[getattr(Attempt, field)] = value
        return query.update(update_values, synchronize_session=False) == 1

    def record_score(self, db: Session, *, attempt_id: int, score: float, max_score: float,
                     percentage: float, passed: bool,
                     allowed_statuses: Iterable[AttemptStatusEnum]) -> bool:
        updated = (
            db.query(Attempt)
            .filter(Attempt.id == attempt_id, Attempt.status.in_(list(allowed_statuses)))
            .update(
                {
                    Attempt.score: score,
                    Attempt.max_score: max_score,
                    Attempt.percentage: percentage,
                    Attempt.passed: passed,
                    Attempt.graded_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def release_if_test_released(self, db: Session, *, attempt_id: int, test_id: int) -> bool:
        """submitted -> graded, guarded by the test's release flag as stored when the update runs."""
        test_released = (
            db.query(Test.id)
            .filter(Test.id == test_id, Test.results_released.is_(True))
            .exists()
        )
        return (
            db.query(Attempt)
            .filter(Attempt.id == attempt_id, Attempt.status == AttemptStatusEnum.SUBMITTED, test_released)
            .update({Attempt.status: AttemptStatusEnum.GRADED}, synchronize_session=False)
        ) == 1

    def release_scored_for_test(self, db: Session, *, test_id: int, exclude_pending_manual: bool = False) -> int:
        query = db.query(Attempt).filter(
            Attempt.test_id == test_id,
            Attempt.status == AttemptStatusEnum.SUBMITTED,
            Attempt.graded_at.isnot(None),
        )
        if exclude_pending_manual:
            awaiting_review = (
                db.query(AttemptAnswer.id)
                .join(Question, Question.id == AttemptAnswer.question_id)
                .filter(
                    AttemptAnswer.attempt_id == Attempt.id,
                    Question.type.in_(list(MANUAL_GRADED_TYPES)),
                    AttemptAnswer.manually_graded.is_(False),
                )
                .correlate(Attempt)
                .exists()
            )
            query = query.filter(~awaiting_review)
        return query.update({Attempt.status: AttemptStatusEnum.GRADED}, synchronize_session=False)


    def count_all(self, db: Session) -> int:
        return db.query(func.count(Attempt.id)).scalar() or 0

    def count_distinct_users(self, db: Session) -> int:
        return db.query(func.count(distinct(Attempt.user_id))).scalar() or 0

    def get_average_percentage(self, db: Session) -> float:
        result = (
            db.query(func.avg(Attempt.percentage))
            .filter(Attempt.status.in_(FINISHED_STATUSES), Attempt.percentage.isnot(None))
            .scalar()
        )
        return float(result) if result else 0.0

    def get_recent(self, db: Session, limit: int = 10) -> List[Attempt]:
        return db.query(Attempt).order_by(Attempt.started_at.desc(), Attempt.id.desc()).limit(limit).all()

    def get_test_statistics(self, db: Session) -> List[Any]:
        finished = Attempt.status.in_(FINISHED_STATUSES)
        scored = and_(finished, Attempt.percentage.isnot(None))
        return (
            db.query(
                Test.id.label("test_id"),
                Test.title,
                Test.status,
                func.count(Attempt.id).label("total_attempts"),
                func.count(case((finished, Attempt.id))).label("completed_attempts"),
                func.count(distinct(Attempt.user_id)).label("unique_users"),
                func.avg(case((scored, Attempt.percentage))).label("avg_score"),
                func.avg(case((finished, Attempt.duration_seconds))).label("avg_duration_seconds"),
                func.avg(case((scored, case((Attempt.passed.is_(True), 100.0), else_=0.0)))).label("pass_rate"),
            )
            .outerjoin(Attempt, Attempt.test_id == Test.id)
            .group_by(Test.id, Test.title, Test.status)
            .order_by(Test.id)
            .all()
        )

    def get_leaderboard(self, db: Session, *, test_id: int, statuses: Iterable[AttemptStatusEnum],
                        limit: int = 100) -> List[Any]:
        """Best percentage per user, ties broken by the fastest attempt."""
        best_score = func.max(Attempt.percentage)
        best_time = func.min(Attempt.duration_seconds)
        return (
            db.query(
                Attempt.user_id,
                best_score.label("best_score"),
                best_time.label("best_time_seconds"),
                func.count(Attempt.id).label("attempt_count"),
            )
            .filter(
                Attempt.test_id == test_id,
                Attempt.status.in_(list(statuses)),
                Attempt.percentage.isnot(None),
            )
            .group_by(Attempt.user_id)
            .order_by(best_score.desc(), best_time.asc(), Attempt.user_id)
            .limit(limit)
            .all()
        )


attempt = CRUDAttempt(Attempt)
