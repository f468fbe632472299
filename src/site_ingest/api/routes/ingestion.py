"""
FastAPI route that starts a domain ingestion.
"""
from typing import Optional

from fastapi import APIRouter, Depends, status

from ...core.logging import logger
from ...core.security import verify_api_key
from ...models.requests import IngestRequest
from ...models.responses import CrawlRunResponse, IngestResponse
from ...services.crawl_runs import CrawlRunService
from ..dependencies import get_crawl_run_service


router = APIRouter()


@router.post(
    "/domains/{domain_id}/ingest",
    response_model=IngestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Ingest a domain",
    description="Create a crawl run and queue a background job that discovers and crawls the domain's pages"
)
async def ingest_domain(
    domain_id: str,
    request: Optional[IngestRequest] = None,
    crawl_runs: CrawlRunService = Depends(get_crawl_run_service),
    api_key: str = Depends(verify_api_key)
) -> IngestResponse:
    """
    Start an ingestion.

    - **max_urls**: Maximum discovered URLs to crawl (1-200)
    - **url_concurrency**: URLs crawled in parallel (1-20)
    - **technologies.scope**: `domain` (detect once) or `per_url`

    Poll the returned job or crawl run for progress.
    """
    crawl_run, job = crawl_runs.request_domain_crawl_run(domain_id, request or IngestRequest())
    logger.info(f"Accepted ingestion for domain {domain_id}: crawl run {crawl_run.id}")
    return IngestResponse(crawl_run=CrawlRunResponse.model_validate(crawl_run), job=job)
