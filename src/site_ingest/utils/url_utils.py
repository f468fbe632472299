"""URL parsing and normalization utilities."""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from ..core.exceptions import InvalidURLError


@dataclass(frozen=True)
class NormalizedUrl:
    """A URL reduced to scheme-less identity: lower-case host plus path."""
    host: str
    path: str
    normalized_url: str


def with_scheme(value: str) -> str:
    """Prefix ``https://`` when the input carries no scheme."""
    value = (value or "").strip()
    if value.startswith("http://") or value.startswith("https://"):
        return value
    return f"https://{value}"


def strip_www(host: Optional[str]) -> str:
    """Lower-case a host and drop one leading ``www.``."""
    host = (host or "").lower()
    return host[4:] if host.startswith("www.") else host


def _host_of(url: str) -> str:
    """
    Extract the lower-case ``host[:port]`` of a URL.

    Raises:
        InvalidURLError: If the URL has no host or an unparsable port
    """
    try:
        parsed = urlparse(with_scheme(url))
        hostname = parsed.hostname
        port = parsed.port
    except ValueError:
        raise InvalidURLError(url)
    if not hostname:
        raise InvalidURLError(url)
    return f"{hostname}:{port}" if port else hostname


def normalize_domain_input(value: str) -> NormalizedUrl:
    """
    Normalize a domain given as a bare host or a URL.

    Returns:
        NormalizedUrl whose ``normalized_url`` is the domain's canonical URL
        (``https://{host}``) and whose path is ``/``
    """
    host = _host_of(value)
    return NormalizedUrl(host=host, path="/", normalized_url=f"https://{host}")


def _normalize_path(path: str) -> str:
    if not path:
        return "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return path


def is_same_site(url: str, domain_host: str) -> bool:
    """
    Check whether a URL belongs to a domain, ignoring a leading ``www.``.

    Unparsable URLs never match.
    """
    try:
        return strip_www(_host_of(url)) == strip_www(domain_host)
    except InvalidURLError:
        return False


def normalize_url_for_domain_host(value: str, domain_host: str) -> NormalizedUrl:
    """
    Normalize a page URL onto its domain's host so ``www.`` variants collapse.

    Raises:
        InvalidURLError: If the URL is unparsable or belongs to another host
    """
    if not is_same_site(value, domain_host):
        raise InvalidURLError(value, "URL does not belong to domain")
    path = _normalize_path(urlparse(with_scheme(value)).path)
    host = domain_host.lower()
    return NormalizedUrl(host=host, path=path, normalized_url=f"https://{host}{path}")

