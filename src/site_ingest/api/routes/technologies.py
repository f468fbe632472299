"""
FastAPI route for looking up a detected technology.
"""
from fastapi import APIRouter, Depends

from ...core.security import verify_api_key
from ...models.responses import TechnologyResponse
from ...services.crawls import CrawlService
from ..dependencies import get_crawl_service


router = APIRouter()


@router.get("/technologies/{slug}", response_model=TechnologyResponse, summary="Get a technology by slug")
async def get_technology(
    slug: str,
    crawls: CrawlService = Depends(get_crawl_service),
    api_key: str = Depends(verify_api_key)
) -> TechnologyResponse:
    return TechnologyResponse.model_validate(crawls.get_technology(slug))
