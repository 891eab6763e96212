"""Job status classification.

Upstream status vocabularies are open-ended; this module folds them into
a closed set.  Precedence: a failure token always wins, then a success
token or any non-empty result list, otherwise the job is in progress.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Sequence

SUCCESS_TOKENS = frozenset({"completed", "succeeded", "finished"})
FAILURE_TOKENS = frozenset({"failed", "error", "errored", "cancelled"})


class JobState(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"

    @property
    def terminal(self) -> bool:
        return self is not JobState.IN_PROGRESS


def classify(status: Optional[str], results: Optional[Sequence[Any]] = None) -> JobState:
    """Map an upstream status token (plus result presence) to a :class:`JobState`."""
    token = (status or "").strip().lower()
    if token in FAILURE_TOKENS:
        return JobState.FAILED
    if token in SUCCESS_TOKENS or results:
        return JobState.SUCCEEDED
    return JobState.IN_PROGRESS
