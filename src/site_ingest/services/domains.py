"""Domain registration and lookup."""
from typing import List, Optional, Tuple

from ..models.records import Domain, Url, UrlType
from ..utils.url_utils import normalize_domain_input, normalize_url_for_domain_host
from .ingest_store import IngestStore


class DomainService:
    def __init__(self, store: IngestStore):
        self.store = store

    def create_domain(self, value: str, create_homepage_url: bool = True) -> Tuple[Domain, bool]:
        """
        Register a domain from a bare host or URL, idempotently by host.

        Args:
            value: e.g. ``example.com`` or ``https://Example.com/about``
            create_homepage_url: Also register the canonical homepage URL

        Returns:
            Tuple of (domain, created)

        Raises:
            InvalidURLError: If no host can be parsed from ``value``
        """
        normalized = normalize_domain_input(value)
        domain, created = self.store.create_domain(normalized.host, normalized.normalized_url)
        if create_homepage_url:
            self.upsert_url(domain.id, domain.canonical_url, url_type=UrlType.HOMEPAGE, is_canonical=True)
        return domain, created

    def get_domain(self, domain_id: str) -> Domain:
        return self.store.require_domain(domain_id)

    def list_domains(self, limit: int = 100, offset: int = 0) -> List[Domain]:
        return self.store.list_domains(limit=limit, offset=offset)

    def upsert_url(
        self,
        domain_id: str,
        url: str,
        url_type: Optional[UrlType] = None,
        is_canonical: Optional[bool] = None,
    ) -> Url:
        """
        Create or update a URL of a domain.

        Raises:
            NotFoundError: If the domain does not exist
            InvalidURLError: If the URL is invalid or belongs to another host
        """
        domain = self.store.require_domain(domain_id)
        normalized = normalize_url_for_domain_host(url, domain.host)
        return self.store.upsert_url(
            domain.id, normalized.path, normalized.normalized_url,
            url_type=url_type, is_canonical=is_canonical
        )

    def list_urls(self, domain_id: str, url_type: Optional[UrlType] = None, limit: Optional[int] = None) -> List[Url]:
        self.store.require_domain(domain_id)
        return self.store.list_urls_for_domain(domain_id, url_type=url_type, limit=limit)
