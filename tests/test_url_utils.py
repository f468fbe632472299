"""Tests for URL normalization."""

import pytest

from site_ingest.core.exceptions import InvalidURLError
from site_ingest.utils.url_utils import (
    is_same_site,
    normalize_domain_input,
    normalize_url_for_domain_host,
    strip_www,
    with_scheme,
)


class TestDomainInput:
    """Test normalize_domain_input."""

    @pytest.mark.parametrize("value", [
        "example.com",
        "EXAMPLE.com",
        "https://example.com",
        "http://example.com/some/path?q=1",
        "  example.com  ",
    ])
    def test_collapses_to_canonical_host(self, value):
        normalized = normalize_domain_input(value)

        assert normalized.host == "example.com"
        assert normalized.path == "/"
        assert normalized.normalized_url == "https://example.com"

    def test_keeps_www_and_port(self):
        assert normalize_domain_input("www.example.com").host == "www.example.com"
        assert normalize_domain_input("localhost:8080").normalized_url == "https://localhost:8080"

    @pytest.mark.parametrize("value", ["", "https://", "http://example.com:notaport"])
    def test_rejects_hostless_input(self, value):
        with pytest.raises(InvalidURLError) as exc_info:
            normalize_domain_input(value)
        assert exc_info.value.status_code == 400


class TestDomainHostUrls:
    """Test normalize_url_for_domain_host and is_same_site."""

    def test_www_variants_collapse_onto_domain_host(self):
        first = normalize_url_for_domain_host("https://www.example.com/about/", "example.com")
        second = normalize_url_for_domain_host("http://EXAMPLE.com/about?ref=x#top", "example.com")

        assert first == second
        assert first.normalized_url == "https://example.com/about"
        assert first.path == "/about"

    def test_root_path(self):
        assert normalize_url_for_domain_host("https://example.com", "example.com").normalized_url == "https://example.com/"
        assert normalize_url_for_domain_host("example.com/", "example.com").path == "/"

    def test_off_site_url_rejected(self):
        with pytest.raises(InvalidURLError):
            normalize_url_for_domain_host("https://other.com/about", "example.com")

    def test_subdomain_is_not_same_site(self):
        assert is_same_site("https://www.example.com/x", "example.com")
        assert is_same_site("https://example.com/x", "www.example.com")
        assert not is_same_site("https://blog.example.com/x", "example.com")
        assert not is_same_site("https://", "example.com")

    def test_helpers(self):
        assert with_scheme("example.com") == "https://example.com"
        assert with_scheme("http://example.com") == "http://example.com"
        assert strip_www("WWW.Example.com") == "example.com"
        assert strip_www(None) == ""
