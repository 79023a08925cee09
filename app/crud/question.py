from typing import List
from sqlalchemy.orm import Session, selectinload

from app.crud.base import CRUDBase
from app.models.question import Question, QuestionOption
from app.schemas.question import QuestionCreate

class CRUDQuestion(CRUDBase[Question, QuestionCreate, QuestionCreate]):

    def get_by_test(self, db: Session, *, test_id: int) -> List[Question]:
        return (
            db.query(Question)
            .options(selectinload(Question.options))
            .filter(Question.test_id == test_id)
            .order_by(Question.order_index, Question.id)
            .all()
        )

    def create_with_options(self, db: Session, *, test_id: int, obj_in: QuestionCreate, commit: bool = True) -> Question:
        data = obj_in.model_dump(exclude={"options"})
        db_obj = Question(test_id=test_id, **data)
        db_obj.options = [QuestionOption(**option.model_dump()) for option in obj_in.options]
        db.add(db_obj)
        db.flush()
        if commit:
            db.commit()
        db.refresh(db_obj)
        return db_obj


question = CRUDQuestion(Question)
