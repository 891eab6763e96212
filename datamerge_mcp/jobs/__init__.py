"""Async job polling for long-running DataMerge operations."""

from datamerge_mcp.jobs.poller import PollOutcome, PollResult, start_and_await
from datamerge_mcp.jobs.status import JobState, classify

__all__ = ["JobState", "PollOutcome", "PollResult", "classify", "start_and_await"]
