from typing import Any, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.crud.base import CRUDBase
from app.models.attempt_answer import AttemptAnswer
from app.schemas.attempt_answer import AttemptAnswerUpsert

class CRUDAttemptAnswer(CRUDBase[AttemptAnswer, AttemptAnswerUpsert, AttemptAnswerUpsert]):

    def get_by_attempt_and_question(self, db: Session, *, attempt_id: int,
                                    question_id: int) -> Optional[AttemptAnswer]:
        return (
            db.query(AttemptAnswer)
            .filter(AttemptAnswer.attempt_id == attempt_id)
            .filter(AttemptAnswer.question_id == question_id)
            .first()
        )

    def get_all_by_attempt(self, db: Session, *, attempt_id: int) -> List[AttemptAnswer]:
        return (
            db.query(AttemptAnswer)
            .options(selectinload(AttemptAnswer.question))
            .filter(AttemptAnswer.attempt_id == attempt_id)
            .order_by(AttemptAnswer.id)
            .all()
        )

    def upsert(self, db: Session, *, attempt_id: int, question_id: int,
               response_json: Any, time_spent_seconds: int) -> AttemptAnswer:
        """Insert-or-update keyed by (attempt_id, question_id). Last write wins. Caller commits."""
        existing = self.get_by_attempt_and_question(db, attempt_id=attempt_id, question_id=question_id)
        if existing is None:
            new_answer = AttemptAnswer(
                attempt_id=attempt_id,
                question_id=question_id,
                response_json=response_json,
                time_spent_seconds=time_spent_seconds,
            )
            try:
                with db.begin_nested():
                    db.add(new_answer)
                return new_answer
            except IntegrityError:
                # Concurrent insert for the same key won; fall through to update it.
                existing = self.get_by_attempt_and_question(db, attempt_id=attempt_id, question_id=question_id)

        existing.response_json = response_json
        existing.time_spent_seconds = time_spent_seconds
        db.add(existing)
        db.flush()
        return existing


attempt_answer = CRUDAttemptAnswer(AttemptAnswer)
