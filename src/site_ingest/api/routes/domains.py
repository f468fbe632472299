"""
FastAPI routes for domain registration and lookup.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ...core.security import verify_api_key
from ...models.records import UrlType
from ...models.requests import CreateDomainRequest
from ...models.responses import DomainResponse, UrlResponse
from ...services.domains import DomainService
from ..dependencies import get_domain_service


router = APIRouter()


@router.post(
    "/domains",
    response_model=DomainResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a domain",
    description="Create a domain from a host or URL; returns the existing domain (200) if already registered"
)
async def create_domain(
    request: CreateDomainRequest,
    response: Response,
    domains: DomainService = Depends(get_domain_service),
    api_key: str = Depends(verify_api_key)
) -> DomainResponse:
    domain, created = domains.create_domain(request.domain, request.create_homepage_url)
    if not created:
        response.status_code = status.HTTP_200_OK
    return DomainResponse.model_validate(domain)


@router.get("/domains", response_model=List[DomainResponse], summary="List domains")
async def list_domains(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    domains: DomainService = Depends(get_domain_service),
    api_key: str = Depends(verify_api_key)
) -> List[DomainResponse]:
    return [DomainResponse.model_validate(d) for d in domains.list_domains(limit=limit, offset=offset)]


@router.get("/domains/{domain_id}", response_model=DomainResponse, summary="Get a domain")
async def get_domain(
    domain_id: str,
    domains: DomainService = Depends(get_domain_service),
    api_key: str = Depends(verify_api_key)
) -> DomainResponse:
    return DomainResponse.model_validate(domains.get_domain(domain_id))


@router.get("/domains/{domain_id}/urls", response_model=List[UrlResponse], summary="List a domain's URLs")
async def list_domain_urls(
    domain_id: str,
    url_type: Optional[UrlType] = Query(None, alias="type", description="Only URLs of this type"),
    limit: Optional[int] = Query(None, ge=1, le=200),
    domains: DomainService = Depends(get_domain_service),
    api_key: str = Depends(verify_api_key)
) -> List[UrlResponse]:
    return [UrlResponse.model_validate(u) for u in domains.list_urls(domain_id, url_type=url_type, limit=limit)]
