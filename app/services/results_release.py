import logging
from datetime import datetime
from typing import Iterable, Mapping
from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from app.core.constants import AttemptStatusEnum, GradingTypeEnum, MANUAL_GRADED_TYPES
from app.crud.attempt import attempt as crud_attempt
from app.crud.test import test as crud_test
from app.models.attempt import Attempt
from app.models.test import Test
from app.schemas.test import ReleaseResultsSummary

logger = logging.getLogger(__name__)


class ResultsReleaseGate:

    def pending_manual_review(self, test: Test, questions_by_id: Mapping, answers: Iterable) -> bool:
        if test.grading_type != GradingTypeEnum.MANUAL_GRADED:
            return False
        return any(
            questions_by_id[answer.question_id].type in MANUAL_GRADED_TYPES and not answer.manually_graded
            for answer in answers
        )

    def apply(self, db: Session, attempt_id: int, test: Test, pending_manual: bool = False) -> bool:
        """Moves a freshly scored attempt from submitted to graded when the policy allows. Caller commits.

        The release flag is checked by the update itself, so a release committed after `test`
        was loaded still takes effect.
        """
        if pending_manual:
            return False
        return crud_attempt.release_if_test_released(db, attempt_id=attempt_id, test_id=test.id)

    def is_results_pending(self, attempt: Attempt) -> bool:
        # Covers unreleased tests, attempts still being scored and attempts awaiting manual review.
        return attempt.status == AttemptStatusEnum.SUBMITTED

    def release_for_test(self, db: Session, test_id: int) -> ReleaseResultsSummary:
        try:
            test = crud_test.get_locked(db, id=test_id)
            if not test:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Test not found.")
            crud_test.update(
                db, db_obj=test,
                obj_in={"results_released": True, "results_release_date": datetime.utcnow()},
                commit=False,
            )
            # Manual-graded attempts still awaiting review stay masked until an admin grades them.
            affected = crud_attempt.release_scored_for_test(
                db, test_id=test_id, exclude_pending_manual=test.grading_type == GradingTypeEnum.MANUAL_GRADED
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Released results for test {test_id}: {affected} attempt(s) moved to graded")
        return ReleaseResultsSummary(test_id=test_id, affected_attempts=affected)

    def release_for_attempt(self, db: Session, attempt_id: int) -> Attempt:
        released = crud_attempt.transition_status(
            db,
            attempt_id=attempt_id,
            expected=AttemptStatusEnum.SUBMITTED,
            new=AttemptStatusEnum.GRADED,
            require_scored=True,
        )
        if released:
            db.commit()
            logger.info(f"Released result for attempt {attempt_id}")
            db.expire_all()
            return crud_attempt.get(db, id=attempt_id)

        db.rollback()
        attempt = crud_attempt.get(db, id=attempt_id)
        if not attempt:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found.")
        if attempt.status == AttemptStatusEnum.GRADED:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt result is already released.")
        if attempt.status == AttemptStatusEnum.IN_PROGRESS:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt has not been submitted.")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt grading is still pending.")


results_release_gate = ResultsReleaseGate()
