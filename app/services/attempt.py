import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from pydantic import ValidationError

from app.core.config import settings
from app.core.constants import AttemptStatusEnum, TestStatusEnum, MANUAL_GRADED_TYPES
from app.crud.attempt import attempt as crud_attempt
from app.crud.attempt_answer import attempt_answer as crud_attempt_answer
from app.crud.question import question as crud_question
from app.crud.test import test as crud_test
from app.models.attempt import Attempt as AttemptModel
from app.models.attempt_answer import AttemptAnswer as AttemptAnswerModel
from app.schemas.attempt import Attempt, AttemptAnswerDetail, AttemptCreate, AttemptDetails
from app.schemas.attempt_answer import AttemptAnswerUpsert, ManualGradeRequest, validate_response_shape
from app.schemas.grading_job import GradingJobStatus
from app.schemas.user import UserContext
from app.services.attempt_scorer import attempt_scorer
from app.services.grading_queue import GradingQueue
from app.services.results_release import results_release_gate
from app.services.test import serialize_question
from app.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)


def _elapsed_seconds(started_at: Optional[datetime], finished_at: datetime) -> int:
    if started_at is None:
        return 0
    if started_at.tzinfo is not None:
        started_at = started_at.replace(tzinfo=None) - started_at.utcoffset()
    return max(int((finished_at - started_at).total_seconds()), 0)


class AttemptService:

    def _get_attempt_or_404(self, db: Session, attempt_id: int) -> AttemptModel:
        attempt = crud_attempt.get(db, id=attempt_id)
        if not attempt:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found.")
        return attempt

    def _to_schema(self, attempt: AttemptModel, current_user_context: UserContext,
                   include_answers: bool = True) -> AttemptDetails:
        is_admin = permission_helper.is_admin(current_user_context)
        details = AttemptDetails(**Attempt.model_validate(attempt).model_dump())

        if not is_admin and results_release_gate.is_results_pending(attempt):
            return details.model_copy(update={
                "score": None,
                "max_score": None,
                "percentage": None,
                "passed": None,
                "answers": None,
                "results_pending": True,
            })

        if not include_answers:
            return details

        test = attempt.test
        graded = attempt.status == AttemptStatusEnum.GRADED
        reveal_key = is_admin or (graded and test.show_correct_answers)
        show_explanation = is_admin or (graded and test.show_explanations)

        answers = sorted(attempt.answers, key=lambda a: (a.question.order_index, a.question_id))
        details.answers = [
            AttemptAnswerDetail(
                question_id=answer.question_id,
                response_json=answer.response_json,
                is_correct=answer.is_correct,
                awarded_points=answer.awarded_points,
                time_spent_seconds=answer.time_spent_seconds,
                feedback=answer.feedback,
                question=serialize_question(answer.question, reveal_key, show_explanation),
            )
            for answer in answers
        ]
        return details

    def start_attempt(self, db: Session, attempt_in: AttemptCreate,
                      current_user_context: UserContext) -> AttemptDetails:
        test = crud_test.get(db, id=attempt_in.test_id)
        if not test or test.status != TestStatusEnum.PUBLISHED:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Test not found.")

        previous = crud_attempt.count_by_user_and_test(
            db, user_id=current_user_context.user_id, test_id=test.id
        )
        if previous >= test.max_attempts:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Maximum number of attempts ({test.max_attempts}) reached for this test."
            )

        attempt = crud_attempt.create(db, obj_in={
            "test_id": test.id,
            "user_id": current_user_context.user_id,
            "status": AttemptStatusEnum.IN_PROGRESS,
            "started_at": datetime.utcnow(),
            "attempt_no": previous + 1,
        })
        logger.info(f"User {current_user_context.user_id} started attempt {attempt.id} on test {test.id}")
        return self._to_schema(attempt, current_user_context, include_answers=False)

    def save_answer(self, db: Session, attempt_id: int, answer_in: AttemptAnswerUpsert,
                    current_user_context: UserContext) -> AttemptAnswerModel:
        attempt = crud_attempt.get_for_update(db, id=attempt_id)
        if not attempt:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found.")

        permission_helper.require_attempt_owner(current_user_context, attempt)

        if attempt.status != AttemptStatusEnum.IN_PROGRESS:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Answers are frozen once an attempt is submitted."
            )

        question = crud_question.get(db, id=answer_in.question_id)
        if not question or question.test_id != attempt.test_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Question does not belong to this attempt's test."
            )

        try:
            response = validate_response_shape(question.type, answer_in.response_json)
        except ValidationError as e:
            problems = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid response for a {question.type.value} question: {problems}"
            )

        answer = crud_attempt_answer.upsert(
            db,
            attempt_id=attempt.id,
            question_id=question.id,
            response_json=response,
            time_spent_seconds=answer_in.time_spent or 0,
        )
        db.commit()
        db.refresh(answer)
        return answer

    def submit_attempt(self, db: Session, attempt_id: int, current_user_context: UserContext,
                       grading_queue: GradingQueue) -> AttemptDetails:
        attempt = self._get_attempt_or_404(db, attempt_id)
        permission_helper.require_attempt_owner(current_user_context, attempt)

        if attempt.status != AttemptStatusEnum.IN_PROGRESS:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt has already been submitted.")

        user_id, test_id = attempt.user_id, attempt.test_id
        now = datetime.utcnow()
        submitted = crud_attempt.transition_status(
            db,
            attempt_id=attempt_id,
            expected=AttemptStatusEnum.IN_PROGRESS,
            new=AttemptStatusEnum.SUBMITTED,
            values={"submitted_at": now, "duration_seconds": _elapsed_seconds(attempt.started_at, now)},
        )
        if not submitted:
            db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt has already been submitted.")
        db.commit()
        logger.info(f"Attempt {attempt_id} submitted by user {user_id}")

        if settings.grading_inline:
            try:
                attempt_scorer.score_attempt(db, attempt_id)
            except Exception as e:
                logger.warning(f"Inline scoring of attempt {attempt_id} failed, handing off to queue: {e}", exc_info=True)
                grading_queue.enqueue(attempt_id, user_id, test_id)
        else:
            grading_queue.enqueue(attempt_id, user_id, test_id)

        db.expire_all()
        return self._to_schema(self._get_attempt_or_404(db, attempt_id), current_user_context, include_answers=False)

    def get_attempt(self, db: Session, attempt_id: int, current_user_context: UserContext) -> AttemptDetails:
        attempt = self._get_attempt_or_404(db, attempt_id)
        permission_helper.require_attempt_view(current_user_context, attempt)
        return self._to_schema(attempt, current_user_context)

    def list_attempts(self, db: Session, current_user_context: UserContext, test_id: Optional[int] = None,
                      skip: int = 0, limit: int = 100) -> List[Attempt]:
        user_filter = None if permission_helper.is_admin(current_user_context) else current_user_context.user_id
        attempts = crud_attempt.get_multi_filtered(db, user_id=user_filter, test_id=test_id, skip=skip, limit=limit)
        return [self._to_schema(a, current_user_context, include_answers=False) for a in attempts]

    def release_attempt_result(self, db: Session, attempt_id: int,
                               current_user_context: UserContext) -> AttemptDetails:
        permission_helper.require_admin(current_user_context, "Only admins can release results.")
        attempt = results_release_gate.release_for_attempt(db, attempt_id)
        return self._to_schema(attempt, current_user_context)

    def grade_answer_manually(self, db: Session, attempt_id: int, question_id: int,
                              grade_in: ManualGradeRequest, current_user_context: UserContext) -> AttemptDetails:
        permission_helper.require_admin(current_user_context, "Only admins can grade answers.")
        attempt = self._get_attempt_or_404(db, attempt_id)
        if attempt.status == AttemptStatusEnum.IN_PROGRESS:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt has not been submitted.")

        answer = crud_attempt_answer.get_by_attempt_and_question(db, attempt_id=attempt_id, question_id=question_id)
        if not answer:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Answer not found.")

        question = answer.question
        if question.type not in MANUAL_GRADED_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only short_text and long_text answers are graded manually."
            )
        if grade_in.awarded_points > question.points:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Awarded points cannot exceed the question's {question.points} points."
            )

        crud_attempt_answer.update(db, db_obj=answer, obj_in={
            "awarded_points": grade_in.awarded_points,
            "manually_graded": True,
            "graded_by": current_user_context.user_id,
            "feedback": grade_in.feedback,
        })
        logger.info(f"Admin {current_user_context.user_id} graded question {question_id} of attempt {attempt_id}")

        attempt_scorer.score_attempt(db, attempt_id)
        db.expire_all()
        return self._to_schema(self._get_attempt_or_404(db, attempt_id), current_user_context)

    def regrade(self, db: Session, attempt_id: int, current_user_context: UserContext,
                grading_queue: GradingQueue) -> GradingJobStatus:
        permission_helper.require_admin(current_user_context, "Only admins can regrade attempts.")
        attempt = self._get_attempt_or_404(db, attempt_id)
        if attempt.status == AttemptStatusEnum.IN_PROGRESS:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt has not been submitted.")

        job, _ = grading_queue.enqueue(attempt.id, attempt.user_id, attempt.test_id)
        if job is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A grading job is being admitted for this attempt.")
        return GradingJobStatus.model_validate(job.model_dump())

    def get_grading_status(self, db: Session, attempt_id: int, current_user_context: UserContext,
                           grading_queue: GradingQueue) -> GradingJobStatus:
        attempt = self._get_attempt_or_404(db, attempt_id)
        permission_helper.require_attempt_view(current_user_context, attempt)

        job = grading_queue.get_status(attempt_id)
        if job is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No grading job found for this attempt.")

        job_status = GradingJobStatus.model_validate(job.model_dump())
        if not permission_helper.is_admin(current_user_context):
            job_status.failed_reason = None
            job_status.result = None
        return job_status


attempt_service = AttemptService()
