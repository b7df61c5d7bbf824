"""
A single generation job: one completion call feeding one artifact or page.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..llm.client import CompletionClient, CompletionError, CompletionRequest
from ..state.models import JobStatus
from ..util import truncate
from .accumulator import StreamAccumulator, finalize_html, render_error_html

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]
SettleCallback = Callable[[str, JobStatus, str], None]

INVALID_HTML_MESSAGE = "The model did not return a usable HTML document"
CANCELLED_MESSAGE = "Generation cancelled"


@dataclass(frozen=True)
class JobOutcome:
    """
    How a job ended.

    Attributes:
        job_id: Id of the artifact or page the job wrote to.
        status: COMPLETE or ERROR.
        html: Final document, or the diagnostic when status is ERROR.
        raw: Unprocessed model output, kept for diagnostics.
        error: Error message when status is ERROR.
    """
    job_id: str
    status: JobStatus
    html: str
    raw: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.COMPLETE


@dataclass
class Job:
    """
    Attributes:
        id: Target id (artifact or site page) the job reports under.
        request: Prompt sent to the completion service.
        client: Completion client used for the single call.
        streaming: Stream chunks (True) or make one single-shot call (False).
        label: Human readable name used in log lines.
    """
    id: str
    request: CompletionRequest
    client: CompletionClient
    streaming: bool = True
    label: str = ""

    async def run(self, on_progress: ProgressCallback, on_settle: SettleCallback) -> JobOutcome:
        """
        Make the completion call and settle exactly once.

        Failures end up as an ERROR outcome. Only task cancellation propagates,
        and only after the job has settled.
        """
        name = self.label or self.id
        accumulator = StreamAccumulator(listener=lambda buffer: self._report_progress(on_progress, buffer))
        try:
            if self.streaming:
                async for chunk in self.client.stream(self.request):
                    accumulator.append(chunk)
                raw = accumulator.buffer
            else:
                raw = await self.client.complete(self.request)
        except asyncio.CancelledError as exc:
            message = exc.args[0] if exc.args and isinstance(exc.args[0], str) else CANCELLED_MESSAGE
            logger.warning("Job %s cancelled: %s", name, message)
            self._settle(on_settle, self._failure(message, accumulator.buffer))
            raise
        except CompletionError as exc:
            logger.warning("Job %s failed: %s", name, exc.message)
            return self._settle(on_settle, self._failure(exc.message, accumulator.buffer))
        except Exception as exc:
            logger.exception("Job %s failed unexpectedly", name)
            return self._settle(on_settle, self._failure(str(exc) or type(exc).__name__, accumulator.buffer))

        result = finalize_html(raw)
        if not result.ok:
            logger.warning("Job %s returned no usable HTML (%d chars)", name, len(raw))
            logger.debug("Raw output for %s: %s", name, truncate(raw, 500, ellipsis="..."))
            return self._settle(on_settle, self._failure(INVALID_HTML_MESSAGE, raw))

        logger.info("Job %s complete (%d chars)", name, len(result.html))
        return self._settle(
            on_settle,
            JobOutcome(job_id=self.id, status=JobStatus.COMPLETE, html=result.html, raw=raw),
        )

    def _failure(self, message: str, raw: str) -> JobOutcome:
        return JobOutcome(
            job_id=self.id,
            status=JobStatus.ERROR,
            html=render_error_html(message),
            raw=raw,
            error=message,
        )

    def _report_progress(self, on_progress: ProgressCallback, buffer: str) -> None:
        try:
            on_progress(self.id, buffer)
        except Exception:
            logger.exception("Progress callback failed for job %s", self.label or self.id)

    def _settle(self, on_settle: SettleCallback, outcome: JobOutcome) -> JobOutcome:
        try:
            on_settle(self.id, outcome.status, outcome.html)
        except Exception:
            logger.exception("Settle callback failed for job %s", self.label or self.id)
        return outcome
