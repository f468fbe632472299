"""
FastAPI routes for URL crawls and their sub-task states.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...core.security import verify_api_key
from ...models.records import TaskType
from ...models.requests import CreateCrawlRequest, PatchCrawlRequest, PatchTaskRequest
from ...models.responses import CrawlTaskResponse, UrlCrawlResponse
from ...services.crawl_runs import CrawlRunService
from ...services.crawls import CrawlService
from ..dependencies import get_crawl_run_service, get_crawl_service


router = APIRouter()


@router.get(
    "/crawls/{crawl_id}",
    response_model=UrlCrawlResponse,
    summary="Get a URL crawl",
    description="Includes each sub-task's status and error, screenshots, sections and detected technologies"
)
async def get_crawl(
    crawl_id: str,
    crawl_runs: CrawlRunService = Depends(get_crawl_run_service),
    api_key: str = Depends(verify_api_key)
) -> UrlCrawlResponse:
    return UrlCrawlResponse.model_validate(crawl_runs.get_crawl(crawl_id))


@router.post(
    "/urls/{url_id}/crawls",
    response_model=UrlCrawlResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a crawl for a URL",
    description="Creates a PENDING crawl outside any crawl run, with one PENDING task per requested type"
)
async def create_crawl(
    url_id: str,
    request: Optional[CreateCrawlRequest] = None,
    crawls: CrawlService = Depends(get_crawl_service),
    api_key: str = Depends(verify_api_key)
) -> UrlCrawlResponse:
    request = request or CreateCrawlRequest()
    return UrlCrawlResponse.model_validate(crawls.create_crawl(url_id, request.tasks))


@router.get(
    "/urls/{url_id}/crawls",
    response_model=List[UrlCrawlResponse],
    summary="List a URL's crawls, newest first"
)
async def list_url_crawls(
    url_id: str,
    limit: int = Query(50, description="Clamped to 1-200"),
    crawls: CrawlService = Depends(get_crawl_service),
    api_key: str = Depends(verify_api_key)
) -> List[UrlCrawlResponse]:
    return [UrlCrawlResponse.model_validate(c) for c in crawls.list_crawls_for_url(url_id, limit=limit)]


@router.patch(
    "/crawls/{crawl_id}",
    response_model=UrlCrawlResponse,
    summary="Update a crawl",
    description="Status changes must follow the crawl state machine (409 otherwise)"
)
async def patch_crawl(
    crawl_id: str,
    request: PatchCrawlRequest,
    crawls: CrawlService = Depends(get_crawl_service),
    api_key: str = Depends(verify_api_key)
) -> UrlCrawlResponse:
    fields = request.model_dump(exclude_unset=True)
    crawl_status = fields.pop("status", None)
    return UrlCrawlResponse.model_validate(crawls.patch_crawl(crawl_id, crawl_status, **fields))


@router.patch(
    "/crawls/{crawl_id}/tasks/{task_type}",
    response_model=CrawlTaskResponse,
    summary="Report a crawl sub-task's status",
    description="RUNNING starts a new attempt, including from FAILED; a task cannot finish while its crawl is PENDING"
)
async def patch_task(
    crawl_id: str,
    task_type: TaskType,
    request: PatchTaskRequest,
    crawls: CrawlService = Depends(get_crawl_service),
    api_key: str = Depends(verify_api_key)
) -> CrawlTaskResponse:
    task = crawls.patch_task(crawl_id, task_type, request.status, error=request.error)
    return CrawlTaskResponse.model_validate(task)
