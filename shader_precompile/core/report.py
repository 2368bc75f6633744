"""
Run report — ordered record of every job's outcome in one invocation.

Counts and totals are folded from the outcome list on demand; nothing
else tracks them.
"""
from __future__ import annotations

from collections import Counter
from typing import Callable, Dict, List, Optional, Tuple

from shader_precompile.io.schema import RunOutcome
from shader_precompile.policy.outcome import OutcomeStatus, is_failure

ProgressCallback = Callable[[int, int, RunOutcome], None]


class RunReport:
    """Append-only list of outcomes plus run-level metadata."""

    def __init__(
        self,
        compiler_version: str = "unknown",
        incremental: bool = True,
        total_jobs: int = 0,
        progress: Optional[ProgressCallback] = None,
    ):
        self.compiler_version = compiler_version
        self.incremental = incremental
        self.total_jobs = total_jobs
        self._progress = progress
        self._outcomes: List[RunOutcome] = []

    def add(self, outcome: RunOutcome) -> None:
        self._outcomes.append(outcome)
        if self._progress is not None:
            self._progress(len(self._outcomes), self.total_jobs, outcome)

    @property
    def outcomes(self) -> Tuple[RunOutcome, ...]:
        return tuple(self._outcomes)

    def counts(self) -> Dict[OutcomeStatus, int]:
        tally = Counter(o.status for o in self._outcomes)
        return {status: tally.get(status, 0) for status in OutcomeStatus}

    def by_status(self, status: OutcomeStatus) -> List[RunOutcome]:
        return [o for o in self._outcomes if o.status == status]

    def outcome_for(self, job_name: str) -> Optional[RunOutcome]:
        for o in self._outcomes:
            if o.job_name == job_name:
                return o
        return None

    @property
    def total_elapsed(self) -> float:
        return sum(o.elapsed for o in self._outcomes)

    @property
    def error_count(self) -> int:
        return sum(1 for o in self._outcomes if is_failure(o.status))

    @property
    def compiled_count(self) -> int:
        return sum(
            1 for o in self._outcomes
            if o.status in (OutcomeStatus.NEW, OutcomeStatus.RECOMPILE, OutcomeStatus.WARNING)
        )

    @property
    def succeeded(self) -> bool:
        """The run fails iff at least one job ended in ERROR."""
        return self.error_count == 0

    def __len__(self) -> int:
        return len(self._outcomes)
