"""Rules that turn per-task outcomes into a crawl's final status."""
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from ..models.records import CrawlStatus, TaskType


@dataclass(frozen=True)
class TaskOutcome:
    """Settled result of one sub-task: either a value or an error message."""
    task_type: TaskType
    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, task_type: TaskType, value: Any = None) -> "TaskOutcome":
        return cls(task_type=task_type, ok=True, value=value)

    @classmethod
    def failure(cls, task_type: TaskType, error: BaseException) -> "TaskOutcome":
        message = getattr(error, "message", None) or str(error) or error.__class__.__name__
        return cls(task_type=task_type, ok=False, error=message)


@dataclass(frozen=True)
class CrawlFinalization:
    status: CrawlStatus
    error: Optional[str]


def finalize_crawl(
    outcomes: Iterable[TaskOutcome],
    gating: Sequence[TaskType] = (TaskType.SCREENSHOT,),
) -> CrawlFinalization:
    """
    Decide a crawl's status from its settled sub-tasks.

    The crawl succeeds iff every gating task that ran succeeded and at least
    one gating task ran. Every failure, gating or not, is reported in the
    error text as ``"type: message"`` joined by ``"; "`` in launch order.
    """
    outcomes = list(outcomes)
    gating_outcomes = [outcome for outcome in outcomes if outcome.task_type in gating]
    ok = bool(gating_outcomes) and all(outcome.ok for outcome in gating_outcomes)

    errors = [
        f"{outcome.task_type.value.lower()}: {outcome.error}"
        for outcome in outcomes
        if not outcome.ok
    ]
    return CrawlFinalization(
        status=CrawlStatus.SUCCESS if ok else CrawlStatus.FAILED,
        error="; ".join(errors) if errors else None,
    )
