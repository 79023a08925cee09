import random
from typing import List, Optional
from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from app.core.constants import QuestionTypeEnum, TestStatusEnum
from app.crud.question import question as crud_question
from app.crud.test import test as crud_test
from app.models.question import Question as QuestionModel
from app.models.test import Test as TestModel
from app.schemas.question import Question, QuestionCreate, QuestionOption
from app.schemas.test import TestCreate, TestUpdate
from app.schemas.user import UserContext
from app.utils.permission import PermissionHelper as permission_helper


def serialize_question(question: QuestionModel, reveal_key: bool, show_explanation: bool) -> Question:
    """Student-safe view of a question unless `reveal_key` is set."""
    options = []
    # A number question's only option is its answer.
    if reveal_key or question.type != QuestionTypeEnum.NUMBER:
        options = [
            QuestionOption(
                id=option.id,
                label=option.label,
                order_index=option.order_index,
                is_correct=option.is_correct if reveal_key else None,
            )
            for option in question.options
        ]
    return Question(
        id=question.id,
        test_id=question.test_id,
        type=question.type,
        prompt=question.prompt,
        explanation=question.explanation if show_explanation else None,
        points=question.points,
        tolerance_numeric=question.tolerance_numeric if reveal_key else None,
        order_index=question.order_index,
        options=options,
    )


class TestService:

    def _get_visible_test(self, db: Session, test_id: int, current_user_context: UserContext) -> TestModel:
        test = crud_test.get(db, id=test_id)
        if not test:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Test not found.")
        if not permission_helper.is_admin(current_user_context) and test.status != TestStatusEnum.PUBLISHED:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Test not found.")
        return test

    def create_test(self, db: Session, test_in: TestCreate, current_user_context: UserContext) -> TestModel:
        permission_helper.require_admin(current_user_context, "Only admins can create tests.")
        data = test_in.model_dump()
        data["created_by"] = current_user_context.user_id
        return crud_test.create(db, obj_in=data)

    def get_test(self, db: Session, test_id: int, current_user_context: UserContext) -> TestModel:
        return self._get_visible_test(db, test_id, current_user_context)

    def list_tests(self, db: Session, current_user_context: UserContext,
                   skip: int = 0, limit: int = 100) -> List[TestModel]:
        status_filter: Optional[TestStatusEnum] = None
        if not permission_helper.is_admin(current_user_context):
            status_filter = TestStatusEnum.PUBLISHED
        return crud_test.get_multi_by_status(db, status=status_filter, skip=skip, limit=limit)

    def update_test(self, db: Session, test_id: int, test_in: TestUpdate,
                    current_user_context: UserContext) -> TestModel:
        permission_helper.require_admin(current_user_context, "Only admins can update tests.")
        test = crud_test.get(db, id=test_id)
        if not test:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Test not found.")
        return crud_test.update(db, db_obj=test, obj_in=test_in)

    def add_questions(self, db: Session, test_id: int, questions_in: List[QuestionCreate],
                      current_user_context: UserContext) -> List[QuestionModel]:
        permission_helper.require_admin(current_user_context, "Only admins can author questions.")
        test = crud_test.get(db, id=test_id)
        if not test:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Test not found.")

        try:
            created = [
                crud_question.create_with_options(db, test_id=test_id, obj_in=question_in, commit=False)
                for question_in in questions_in
            ]
            db.commit()
        except Exception:
            db.rollback()
            raise
        for question in created:
            db.refresh(question)
        return created

    def get_questions(self, db: Session, test_id: int, current_user_context: UserContext) -> List[Question]:
        test = self._get_visible_test(db, test_id, current_user_context)
        is_admin = permission_helper.is_admin(current_user_context)
        questions = crud_question.get_by_test(db, test_id=test.id)

        if test.shuffle_questions and not is_admin:
            # Stable per user so a reload does not reorder the paper.
            random.Random(f"{test.id}:{current_user_context.user_id}").shuffle(questions)

        return [serialize_question(q, reveal_key=is_admin, show_explanation=is_admin) for q in questions]


test_service = TestService()
