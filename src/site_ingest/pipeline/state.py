"""
Allowed status transitions for tasks, crawls, crawl runs and jobs.

Every status write in the store and the job runner goes through
``check_transition`` so an entity can never move backwards or leave a
terminal state, apart from the explicit FAILED -> RUNNING task re-attempt.
"""
from typing import Dict, FrozenSet

from ..core.exceptions import InvalidTransitionError
from ..models.job import JobStatus
from ..models.records import CrawlStatus

TASK = "task"
CRAWL = "crawl"
CRAWL_RUN = "crawl_run"
JOB = "job"

_CRAWL_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    CrawlStatus.PENDING.value: frozenset({CrawlStatus.RUNNING.value, CrawlStatus.FAILED.value}),
    CrawlStatus.RUNNING.value: frozenset({CrawlStatus.SUCCESS.value, CrawlStatus.FAILED.value}),
    CrawlStatus.SUCCESS.value: frozenset(),
    CrawlStatus.FAILED.value: frozenset(),
}

_TASK_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    **_CRAWL_TRANSITIONS,
    CrawlStatus.FAILED.value: frozenset({CrawlStatus.RUNNING.value}),
}

_JOB_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    JobStatus.QUEUED.value: frozenset({JobStatus.RUNNING.value}),
    JobStatus.RUNNING.value: frozenset({JobStatus.SUCCEEDED.value, JobStatus.FAILED.value}),
    JobStatus.SUCCEEDED.value: frozenset(),
    JobStatus.FAILED.value: frozenset(),
}

TRANSITIONS = {
    TASK: _TASK_TRANSITIONS,
    CRAWL: _CRAWL_TRANSITIONS,
    CRAWL_RUN: _CRAWL_TRANSITIONS,
    JOB: _JOB_TRANSITIONS,
}

TERMINAL_CRAWL_STATUSES = frozenset({CrawlStatus.SUCCESS.value, CrawlStatus.FAILED.value})


def _value(status) -> str:
    return getattr(status, "value", status)


def can_transition(kind: str, current, target) -> bool:
    return _value(target) in TRANSITIONS[kind].get(_value(current), frozenset())


def check_transition(kind: str, current, target) -> None:
    """
    Validate a status change.

    Args:
        kind: One of TASK, CRAWL, CRAWL_RUN, JOB
        current: Current status (enum member or its string value)
        target: Requested status

    Raises:
        InvalidTransitionError: If the change is not allowed
    """
    if not can_transition(kind, current, target):
        raise InvalidTransitionError(kind, _value(current), _value(target))
