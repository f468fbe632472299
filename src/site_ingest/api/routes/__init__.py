"""API route handlers."""

from . import (
    crawl_runs,
    crawls,
    domains,
    health,
    ingestion,
    jobs,
    technologies,
)

__all__ = [
    "crawl_runs",
    "crawls",
    "domains",
    "health",
    "ingestion",
    "jobs",
    "technologies",
]
