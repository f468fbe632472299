"""
FastAPI routes for background job status.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...core.security import verify_api_key
from ...models.job import Job
from ...services.job_runner import JobRunner
from ..dependencies import get_job_runner


router = APIRouter()


@router.get("/jobs", response_model=List[Job], summary="List jobs, newest first")
async def list_jobs(
    runner: JobRunner = Depends(get_job_runner),
    api_key: str = Depends(verify_api_key)
) -> List[Job]:
    return runner.list()


@router.get("/jobs/{job_id}", response_model=Job, summary="Get job status")
async def get_job(
    job_id: str,
    runner: JobRunner = Depends(get_job_runner),
    api_key: str = Depends(verify_api_key)
) -> Job:
    job = runner.get(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found"
        )
    return job
