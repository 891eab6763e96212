"""Start-then-poll driver shared by every asynchronous upstream operation.

:func:`start_and_await` calls ``start`` once, then sleeps and fetches
the job status at a fixed interval until the job reaches a terminal
state or the timeout elapses.  There is no backoff and no retry: a
failed call ends the loop with that error.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Optional

from datamerge_mcp.constants import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_TIMEOUT
from datamerge_mcp.jobs.status import JobState, classify
from datamerge_mcp.upstream.envelope import ApiResult
from datamerge_mcp.upstream.records import Job

logger = logging.getLogger(__name__)

StartFn = Callable[[], Awaitable[ApiResult[Job]]]
FetchStatusFn = Callable[[str], Awaitable[ApiResult[Job]]]


class PollOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollResult:
    """Terminal outcome of :func:`start_and_await`.

    On ``TIMED_OUT`` the job is the last one observed; its id lets the
    caller resume polling manually.
    """

    outcome: PollOutcome
    job: Job
    elapsed: float
    polls: int

    @property
    def job_id(self) -> str:
        return self.job.id


def effective_seconds(value: Optional[float], default: float) -> float:
    """Missing or non-positive values fall back to *default*."""
    if value is None or value <= 0:
        return default
    return float(value)


async def start_and_await(
    start: StartFn,
    fetch_status: FetchStatusFn,
    *,
    poll_interval: Optional[float] = None,
    timeout: Optional[float] = None,
    default_interval: float = DEFAULT_POLL_INTERVAL,
    default_timeout: float = DEFAULT_POLL_TIMEOUT,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    clock: Optional[Callable[[], float]] = None,
) -> ApiResult[PollResult]:
    """Start a job and poll it to a terminal state or timeout.

    Args:
        start: Coroutine factory submitting the job.
        fetch_status: Coroutine taking a job id and returning its status.
        poll_interval: Seconds between status fetches.
        timeout: Seconds after the start call before giving up.
        sleep: Defaults to :func:`asyncio.sleep`.
        clock: Defaults to :func:`time.monotonic`.

    Returns:
        ``ApiResult`` wrapping a :class:`PollResult`, or the error of the
        failed start/status call.
    """
    interval = effective_seconds(poll_interval, default_interval)
    limit = effective_seconds(timeout, default_timeout)
    sleep = sleep or asyncio.sleep
    clock = clock or time.monotonic

    started_at = clock()
    started = await start()
    if not started.ok or started.data is None:
        return ApiResult.failure(started.error or "Failed to start job", started.status_code)

    job = started.data
    logger.info("Job %s started (status=%s); polling every %.1fs.", job.id, job.status, interval)

    polls = 0
    while clock() - started_at < limit:
        await sleep(interval)
        polls += 1
        fetched = await fetch_status(job.id)
        if not fetched.ok or fetched.data is None:
            logger.warning("Status fetch for job %s failed: %s", job.id, fetched.error)
            return ApiResult.failure(
                f"Failed while polling job {job.id}: {fetched.error}", fetched.status_code
            )

        job = fetched.data if fetched.data.id else replace(fetched.data, id=job.id)
        state = classify(job.status, job.results)
        logger.debug("Job %s poll #%d: status=%s -> %s", job.id, polls, job.status, state.value)
        if state is JobState.SUCCEEDED:
            logger.info("Job %s completed after %d poll(s).", job.id, polls)
            return ApiResult.success(
                PollResult(PollOutcome.SUCCEEDED, job, clock() - started_at, polls)
            )
        if state is JobState.FAILED:
            logger.info("Job %s failed with status %s.", job.id, job.status)
            return ApiResult.success(
                PollResult(PollOutcome.FAILED, job, clock() - started_at, polls)
            )

    logger.info("Job %s still %s after %.1fs; giving up.", job.id, job.status, limit)
    return ApiResult.success(PollResult(PollOutcome.TIMED_OUT, job, clock() - started_at, polls))

