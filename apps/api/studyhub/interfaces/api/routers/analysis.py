from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from studyhub.application.analysis_service import AnalysisService
from studyhub.core.domain.analysis import AnalysisRequest, JobStatus
from studyhub.core.domain.errors import JobNotFoundError, JobStateError
from studyhub.interfaces.api.deps import get_analysis_service
from studyhub.interfaces.api.schemas import (
    JobListResponse,
    JobStatusResponse,
    StatsResponse,
    SubmitJobRequest,
    SubmitJobResponse,
)

router = APIRouter(prefix="/analysis", tags=["analysis"])


def _submit_response(result) -> SubmitJobResponse:
    return SubmitJobResponse(
        job_id=result.job_id,
        status=result.status,
        progress=result.progress,
        message=result.message,
        reused=result.reused,
    )


@router.post("/jobs", response_model=SubmitJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_job(
    req: SubmitJobRequest,
    response: Response,
    service: AnalysisService = Depends(get_analysis_service),
) -> SubmitJobResponse:
    result = await service.submit(
        AnalysisRequest(
            resource_id=req.resource_id,
            file_path=req.file_path,
            file_type=req.file_type,
            enable_analysis=req.enable_ai_analysis,
        )
    )
    if not result.accepted:
        response.status_code = status.HTTP_200_OK
    return _submit_response(result)


@router.get("/jobs", response_model=JobListResponse)
def list_jobs(
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    service: AnalysisService = Depends(get_analysis_service),
) -> JobListResponse:
    try:
        parsed = JobStatus.parse(status_filter) if status_filter else None
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    jobs = service.list_jobs(limit=limit, status=parsed)
    return JobListResponse(jobs=[JobStatusResponse.from_domain(job) for job in jobs])


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str, service: AnalysisService = Depends(get_analysis_service)) -> JobStatusResponse:
    view = service.get_status(job_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobStatusResponse.from_domain(view.job, view.resource)


@router.post("/jobs/{job_id}/retry", response_model=SubmitJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def retry_job(job_id: str, service: AnalysisService = Depends(get_analysis_service)) -> SubmitJobResponse:
    try:
        result = await service.retry(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except JobStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _submit_response(result)


@router.get("/stats", response_model=StatsResponse)
def job_stats(service: AnalysisService = Depends(get_analysis_service)) -> StatsResponse:
    counts = service.stats()
    return StatsResponse(
        pending=counts.get(JobStatus.PENDING.value, 0),
        processing=counts.get(JobStatus.PROCESSING.value, 0),
        completed=counts.get(JobStatus.COMPLETED.value, 0),
        failed=counts.get(JobStatus.FAILED.value, 0),
        total=counts.get("total", 0),
    )
