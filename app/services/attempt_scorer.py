import logging
from dataclasses import dataclass, field
from typing import Dict
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import AttemptStatusEnum, MANUAL_GRADED_TYPES
from app.core.exceptions import AttemptNotFoundError, AttemptStateError, QuestionNotFoundError
from app.crud.attempt import attempt as crud_attempt
from app.crud.attempt_answer import attempt_answer as crud_attempt_answer
from app.crud.question import question as crud_question
from app.crud.test import test as crud_test
from app.services.answer_grader import GradeResult, GradingPolicy, build_answer_key, grade_answer
from app.services.results_release import results_release_gate

logger = logging.getLogger(__name__)

SCORABLE_STATUSES = (AttemptStatusEnum.SUBMITTED, AttemptStatusEnum.GRADED)


@dataclass
class ScoreResult:
    attempt_id: int
    score: float
    max_score: float
    percentage: float
    passed: bool
    status: AttemptStatusEnum
    answers: Dict[int, GradeResult] = field(default_factory=dict)

    def as_job_result(self) -> dict:
        return {
            "attempt_id": self.attempt_id,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "passed": self.passed,
            "status": self.status.value,
        }


class AttemptScorer:

    def __init__(self, negative_marking_fraction: float = settings.NEGATIVE_MARKING_FRACTION):
        self.negative_marking_fraction = negative_marking_fraction

    def score_attempt(self, db: Session, attempt_id: int) -> ScoreResult:
        """Recomputes the attempt's score from its stored answers and the current answer keys.

        All-or-nothing: any load or key error rolls back and propagates.
        """
        try:
            result = self._score(db, attempt_id)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"Scored attempt {attempt_id}: {result.score}/{result.max_score} "
            f"({result.percentage:.1f}%, passed={result.passed}, status={result.status.value})"
        )
        return result

    def _score(self, db: Session, attempt_id: int) -> ScoreResult:
        attempt = crud_attempt.get(db, id=attempt_id)
        if not attempt:
            raise AttemptNotFoundError(attempt_id)

        # Lock order is test, then attempt, the same order a bulk release takes.
        test = crud_test.get_locked(db, id=attempt.test_id, shared=True)
        if not test:
            raise AttemptStateError(f"Test {attempt.test_id} for attempt {attempt_id} no longer exists")
        # A second scoring pass on the same attempt waits here until the first commits.
        attempt = crud_attempt.get_for_update(db, id=attempt_id)
        if not attempt:
            raise AttemptNotFoundError(attempt_id)
        if attempt.status not in SCORABLE_STATUSES:
            raise AttemptStateError(f"Attempt {attempt_id} is {attempt.status.value}, not submitted")

        questions = crud_question.get_by_test(db, test_id=test.id)
        questions_by_id = {question.id: question for question in questions}
        answers = crud_attempt_answer.get_all_by_attempt(db, attempt_id=attempt_id)

        missing = {answer.question_id for answer in answers if answer.question_id not in questions_by_id}
        if missing:
            raise QuestionNotFoundError(missing)

        policy = GradingPolicy(
            negative_marking=bool(test.negative_marking),
            negative_fraction=self.negative_marking_fraction,
        )

        graded: Dict[int, GradeResult] = {}
        for answer in answers:
            question = questions_by_id[answer.question_id]
            key = build_answer_key(question)
            manual_points = None
            if question.type in MANUAL_GRADED_TYPES and answer.manually_graded:
                manual_points = answer.awarded_points
            outcome = grade_answer(key, answer.response_json, question.points, policy, manual_points)
            answer.is_correct = outcome.is_correct
            answer.awarded_points = outcome.awarded_points
            graded[question.id] = outcome

        max_score = float(sum(question.points for question in questions))
        raw_score = sum(outcome.awarded_points for outcome in graded.values())
        score = min(max(raw_score, 0.0), max_score)
        percentage = (score / max_score * 100) if max_score > 0 else 0.0
        passed = percentage >= (test.pass_score or 0)

        db.flush()

        recorded = crud_attempt.record_score(
            db,
            attempt_id=attempt_id,
            score=score,
            max_score=max_score,
            percentage=percentage,
            passed=passed,
            allowed_statuses=SCORABLE_STATUSES,
        )
        if not recorded:
            raise AttemptStateError(f"Attempt {attempt_id} changed status while being scored")

        pending_manual = results_release_gate.pending_manual_review(test, questions_by_id, answers)
        released = results_release_gate.apply(db, attempt_id, test, pending_manual)
        if released or attempt.status == AttemptStatusEnum.GRADED:
            new_status = AttemptStatusEnum.GRADED
        else:
            new_status = AttemptStatusEnum.SUBMITTED

        return ScoreResult(
            attempt_id=attempt_id,
            score=score,
            max_score=max_score,
            percentage=percentage,
            passed=passed,
            status=new_status,
            answers=graded,
        )


attempt_scorer = AttemptScorer()
