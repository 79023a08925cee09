from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.constants import JobStateEnum
from app.schemas.response import APIResponse
from app.schemas.grading_job import GradingJob
from app.schemas.user import UserContext
from app.services.grading_queue import GradingQueue
from app.utils import deps

router = APIRouter()

@router.get("/jobs", response_model=APIResponse[List[GradingJob]])
def list_grading_jobs(
    state: Optional[JobStateEnum] = Query(None),
    context: UserContext = Depends(deps.require_admin),
    grading_queue: GradingQueue = Depends(deps.get_grading_queue)
):
    jobs = grading_queue.list_jobs(state)
    return APIResponse(message="Grading jobs retrieved successfully", data=jobs)


@router.post("/jobs/{attempt_id}/retry", response_model=APIResponse[GradingJob])
def retry_grading_job(
    *,
    attempt_id: int,
    context: UserContext = Depends(deps.require_admin),
    grading_queue: GradingQueue = Depends(deps.get_grading_queue)
):
    job = grading_queue.retry_failed(attempt_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No failed grading job to retry for this attempt."
        )
    return APIResponse(message="Grading job re-queued successfully", data=job)
