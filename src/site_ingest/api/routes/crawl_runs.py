"""
FastAPI routes for crawl run history.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...core.security import verify_api_key
from ...models.records import CrawlStatus
from ...models.responses import CrawlRunDetailResponse, CrawlRunResponse, UrlCrawlResponse
from ...services.crawl_runs import CrawlRunService
from ..dependencies import get_crawl_run_service


router = APIRouter()


@router.get(
    "/domains/{domain_id}/crawl-runs",
    response_model=List[CrawlRunResponse],
    summary="List a domain's crawl runs, newest first"
)
async def list_crawl_runs(
    domain_id: str,
    limit: int = Query(50, description="Clamped to 1-200"),
    status: Optional[CrawlStatus] = Query(None),
    crawl_runs: CrawlRunService = Depends(get_crawl_run_service),
    api_key: str = Depends(verify_api_key)
) -> List[CrawlRunResponse]:
    runs = crawl_runs.list_crawl_runs_for_domain(domain_id, limit=limit, status=status)
    return [CrawlRunResponse.model_validate(run) for run in runs]


@router.get(
    "/crawl-runs/{crawl_run_id}",
    response_model=CrawlRunDetailResponse,
    summary="Get a crawl run with its URL crawls"
)
async def get_crawl_run(
    crawl_run_id: str,
    crawl_runs: CrawlRunService = Depends(get_crawl_run_service),
    api_key: str = Depends(verify_api_key)
) -> CrawlRunDetailResponse:
    run = CrawlRunResponse.model_validate(crawl_runs.get_crawl_run(crawl_run_id))
    crawls = [UrlCrawlResponse.model_validate(c) for c in crawl_runs.list_crawls(crawl_run_id)]
    return CrawlRunDetailResponse(**run.model_dump(), crawls=crawls)
