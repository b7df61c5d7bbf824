"""
Bounded-width batch execution of jobs, plus the retry wrapper applied to every job.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

from ..llm.client import CompletionClient, CompletionError, CompletionRequest
from ..state.models import JobStatus
from .accumulator import render_error_html
from .job import Job, JobOutcome, ProgressCallback, SettleCallback

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Generation timed out"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff settings.

    Attributes:
        max_attempts: Total attempts including the first call.
        base_delay: Delay in seconds before the second attempt.
        factor: Multiplier applied to the delay after each failed attempt.
        max_delay: Upper bound for any single delay.
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    factor: float = 2.0
    max_delay: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the `attempt`-th failed call (1-based)."""
        return min(self.max_delay, self.base_delay * (self.factor ** (attempt - 1)))


class RetryingCompletionClient:
    """
    Wraps a completion client and retries retryable failures with backoff.

    Streaming calls are only retried while no chunk has been produced; once
    content has been handed out, a failure propagates unchanged.
    """

    def __init__(
        self,
        inner: CompletionClient,
        policy: RetryPolicy,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.inner = inner
        self.policy = policy
        self._sleep = sleep

    async def complete(self, request: CompletionRequest) -> str:
        attempt = 1
        while True:
            try:
                return await self.inner.complete(request)
            except CompletionError as exc:
                await self._backoff_or_raise(exc, attempt)
                attempt += 1

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        attempt = 1
        while True:
            produced = False
            try:
                async for chunk in self.inner.stream(request):
                    produced = True
                    yield chunk
                return
            except CompletionError as exc:
                if produced:
                    raise
                await self._backoff_or_raise(exc, attempt)
                attempt += 1

    async def _backoff_or_raise(self, exc: CompletionError, attempt: int) -> None:
        if not exc.retryable or attempt >= self.policy.max_attempts:
            raise exc
        delay = self.policy.delay_for(attempt)
        logger.warning(
            "Completion attempt %d/%d failed (%s); retrying in %.1fs",
            attempt,
            self.policy.max_attempts,
            exc.message,
            delay,
        )
        await self._sleep(delay)


class BatchScheduler:
    """
    Runs jobs in consecutive groups of at most `width`.

    A group starts only after every job of the previous group has settled. A
    failing job never stops its siblings or later groups. With `batch_timeout`
    set, jobs still running when a group hits the ceiling are cancelled and
    settle as errors.
    """

    def __init__(
        self,
        width: int = 3,
        *,
        retry: Optional[RetryPolicy] = None,
        batch_timeout: Optional[float] = None,
    ) -> None:
        if width < 1:
            raise ValueError("width must be >= 1")
        self.width = width
        self.retry = retry
        self.batch_timeout = batch_timeout

    def wrap_client(self, client: CompletionClient) -> CompletionClient:
        if self.retry is None or self.retry.max_attempts <= 1 or isinstance(client, RetryingCompletionClient):
            return client
        return RetryingCompletionClient(client, self.retry)

    async def run(
        self,
        jobs: Sequence[Job],
        on_progress: ProgressCallback,
        on_settle: SettleCallback,
    ) -> List[JobOutcome]:
        prepared = [replace(job, client=self.wrap_client(job.client)) for job in jobs]
        outcomes: List[JobOutcome] = []
        total_groups = (len(prepared) + self.width - 1) // self.width
        for group_index, start in enumerate(range(0, len(prepared), self.width), start=1):
            group = prepared[start:start + self.width]
            logger.info("Running batch %d/%d (%d jobs)", group_index, total_groups, len(group))
            outcomes.extend(await self._run_group(group, on_progress, on_settle))
        failed = sum(1 for outcome in outcomes if not outcome.ok)
        if failed:
            logger.warning("%d of %d jobs failed", failed, len(outcomes))
        return outcomes

    async def _run_group(
        self,
        group: Sequence[Job],
        on_progress: ProgressCallback,
        on_settle: SettleCallback,
    ) -> List[JobOutcome]:
        if self.batch_timeout is None:
            return list(await asyncio.gather(*(job.run(on_progress, on_settle) for job in group)))

        tasks = [asyncio.create_task(job.run(on_progress, on_settle)) for job in group]
        _, pending = await asyncio.wait(tasks, timeout=self.batch_timeout)
        for task in pending:
            task.cancel(TIMEOUT_MESSAGE)
        if pending:
            logger.warning("Batch ceiling of %.1fs reached; cancelled %d job(s)", self.batch_timeout, len(pending))
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: List[JobOutcome] = []
        for job, result in zip(group, results):
            if isinstance(result, BaseException):
                outcomes.append(
                    JobOutcome(
                        job_id=job.id,
                        status=JobStatus.ERROR,
                        html=render_error_html(TIMEOUT_MESSAGE),
                        error=TIMEOUT_MESSAGE,
                    )
                )
            else:
                outcomes.append(result)
        return outcomes
