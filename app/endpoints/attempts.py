from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.schemas.response import APIResponse
from app.utils import deps
from app.schemas.attempt import Attempt, AttemptCreate, AttemptDetails
from app.schemas.attempt_answer import AttemptAnswer, AttemptAnswerUpsert, ManualGradeRequest
from app.schemas.grading_job import GradingJobStatus
from app.schemas.user import UserContext
from app.services.attempt import attempt_service
from app.services.grading_queue import GradingQueue

router = APIRouter()

@router.post("/start", response_model=APIResponse[AttemptDetails], status_code=status.HTTP_201_CREATED)
def start_attempt(
    *,
    db: Session = Depends(deps.get_db),
    attempt_in: AttemptCreate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    attempt = attempt_service.start_attempt(db, attempt_in=attempt_in, current_user_context=context)
    return APIResponse(message="Attempt started successfully", data=attempt)


@router.get("/", response_model=APIResponse[List[Attempt]])
def get_attempts(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    test_id: Optional[int] = Query(None),
    skip: int = 0,
    limit: int = 100
):
    attempts = attempt_service.list_attempts(db, current_user_context=context, test_id=test_id, skip=skip, limit=limit)
    return APIResponse(message="Attempts retrieved successfully", data=attempts)


@router.get("/{attempt_id}", response_model=APIResponse[AttemptDetails])
def get_attempt(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    attempt = attempt_service.get_attempt(db, attempt_id=attempt_id, current_user_context=context)
    return APIResponse(message="Attempt retrieved successfully", data=attempt)


@router.post("/{attempt_id}/answer", response_model=APIResponse[AttemptAnswer])
def save_answer(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int,
    answer_in: AttemptAnswerUpsert,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    answer = attempt_service.save_answer(db, attempt_id=attempt_id, answer_in=answer_in, current_user_context=context)
    return APIResponse(message="Answer saved successfully", data=AttemptAnswer.model_validate(answer))


@router.post("/{attempt_id}/submit", response_model=APIResponse[AttemptDetails])
def submit_attempt(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context),
    grading_queue: GradingQueue = Depends(deps.get_grading_queue)
):
    attempt = attempt_service.submit_attempt(
        db, attempt_id=attempt_id, current_user_context=context, grading_queue=grading_queue
    )
    return APIResponse(message="Attempt submitted successfully", data=attempt)


@router.post("/{attempt_id}/release-result", response_model=APIResponse[AttemptDetails])
def release_attempt_result(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    attempt = attempt_service.release_attempt_result(db, attempt_id=attempt_id, current_user_context=context)
    return APIResponse(message="Attempt result released successfully", data=attempt)


@router.get("/{attempt_id}/grading-status", response_model=APIResponse[GradingJobStatus])
def get_grading_status(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context),
    grading_queue: GradingQueue = Depends(deps.get_grading_queue)
):
    job_status = attempt_service.get_grading_status(
        db, attempt_id=attempt_id, current_user_context=context, grading_queue=grading_queue
    )
    return APIResponse(message="Grading status retrieved successfully", data=job_status)


@router.post("/{attempt_id}/answers/{question_id}/grade", response_model=APIResponse[AttemptDetails])
def grade_answer(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int,
    question_id: int,
    grade_in: ManualGradeRequest,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    attempt = attempt_service.grade_answer_manually(
        db, attempt_id=attempt_id, question_id=question_id, grade_in=grade_in, current_user_context=context
    )
    return APIResponse(message="Answer graded successfully", data=attempt)


@router.post("/{attempt_id}/regrade", response_model=APIResponse[GradingJobStatus], status_code=status.HTTP_202_ACCEPTED)
def regrade_attempt(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context),
    grading_queue: GradingQueue = Depends(deps.get_grading_queue)
):
    job_status = attempt_service.regrade(
        db, attempt_id=attempt_id, current_user_context=context, grading_queue=grading_queue
    )
    return APIResponse(message="Regrade queued successfully", data=job_status)
