from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.schemas.response import APIResponse
from app.utils import deps
from app.schemas.test import Test, TestCreate, TestUpdate, ReleaseResultsSummary
from app.schemas.question import Question, QuestionCreate
from app.schemas.user import UserContext
from app.services.test import test_service, serialize_question
from app.services.results_release import results_release_gate

router = APIRouter()

@router.post("/", response_model=APIResponse[Test], status_code=status.HTTP_201_CREATED)
def create_test(
    *,
    db: Session = Depends(deps.get_transactional_db),
    test_in: TestCreate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    new_test = test_service.create_test(db, test_in=test_in, current_user_context=context)
    return APIResponse(message="Test created successfully", data=Test.model_validate(new_test))


@router.get("/", response_model=APIResponse[List[Test]])
def get_all_tests(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    skip: int = 0,
    limit: int = 100
):
    tests = test_service.list_tests(db, current_user_context=context, skip=skip, limit=limit)
    return APIResponse(message="Tests retrieved successfully", data=[Test.model_validate(t) for t in tests])


@router.get("/{test_id}", response_model=APIResponse[Test])
def get_test(
    *,
    db: Session = Depends(deps.get_db),
    test_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    test = test_service.get_test(db, test_id=test_id, current_user_context=context)
    return APIResponse(message="Test retrieved successfully", data=Test.model_validate(test))


@router.put("/{test_id}", response_model=APIResponse[Test])
def update_test(
    *,
    db: Session = Depends(deps.get_transactional_db),
    test_id: int,
    test_in: TestUpdate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    updated_test = test_service.update_test(db, test_id=test_id, test_in=test_in, current_user_context=context)
    return APIResponse(message="Test updated successfully", data=Test.model_validate(updated_test))


@router.post("/{test_id}/questions", response_model=APIResponse[List[Question]], status_code=status.HTTP_201_CREATED)
def add_questions(
    *,
    db: Session = Depends(deps.get_transactional_db),
    test_id: int,
    questions_in: List[QuestionCreate],
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    questions = test_service.add_questions(db, test_id=test_id, questions_in=questions_in, current_user_context=context)
    return APIResponse(
        message=f"{len(questions)} question(s) added successfully",
        data=[serialize_question(q, reveal_key=True, show_explanation=True) for q in questions]
    )


@router.get("/{test_id}/questions", response_model=APIResponse[List[Question]])
def get_questions(
    *,
    db: Session = Depends(deps.get_db),
    test_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    questions = test_service.get_questions(db, test_id=test_id, current_user_context=context)
    return APIResponse(message="Questions retrieved successfully", data=questions)


@router.post("/{test_id}/release-results", response_model=APIResponse[ReleaseResultsSummary])
def release_test_results(
    *,
    db: Session = Depends(deps.get_db),
    test_id: int,
    context: UserContext = Depends(deps.require_admin)
):
    """Publishes results for every scored attempt of the test and for any scored later."""
    summary = results_release_gate.release_for_test(db, test_id=test_id)
    return APIResponse(
        message=f"Results released for {summary.affected_attempts} attempt(s)",
        data=summary
    )
