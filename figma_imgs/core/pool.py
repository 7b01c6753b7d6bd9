"""
Runs batches of coroutines with a fixed number of workers, collecting each
task's outcome without letting one failure abort the rest.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

log = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class TaskOutcome:
    """The settled result of one pooled task."""

    status: Literal["fulfilled", "rejected"]
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status == "fulfilled"


async def run_pool(tasks: Sequence[TaskFactory], n: int) -> list[TaskOutcome]:
    """
    Runs ``tasks`` with at most ``min(n, len(tasks))`` of them in flight.

    Each worker repeatedly takes the next unclaimed task from a shared FIFO
    queue until none remain. Outcomes are returned grouped by worker in
    completion order, not in submission order, so a task that needs to be
    correlated afterwards must include its own identifier in its result.

    Args:
        tasks: Zero-argument callables returning an awaitable.
        n: Maximum number of concurrently running tasks.
    """
    if n < 1:
        raise ValueError("Pool size must be at least 1.")

    queue: deque[TaskFactory] = deque(tasks)
    worker_count = min(n, len(queue))
    if not worker_count:
        return []

    async def worker() -> list[TaskOutcome]:
        outcomes = []
        while queue:
            task = queue.popleft()
            try:
                value = await task()
            except Exception as e:
                log.debug(f"Pooled task failed: {e!r}")
                outcomes.append(TaskOutcome(status="rejected", error=e))
            else:
                outcomes.append(TaskOutcome(status="fulfilled", value=value))
        return outcomes

    per_worker = await asyncio.gather(*(worker() for _ in range(worker_count)))
    return [outcome for outcomes in per_worker for outcome in outcomes]
