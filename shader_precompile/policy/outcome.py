"""
Outcome classification for compile jobs.

Every job ends in exactly one status.  Only ERROR fails the run;
WARNING never does.
"""
from __future__ import annotations

from enum import Enum


class OutcomeStatus(str, Enum):
    SKIP = "SKIP"
    NEW = "NEW"
    RECOMPILE = "RECOMPILE"
    WARNING = "WARNING"
    ERROR = "ERROR"


# Report section order
REPORT_ORDER = (
    OutcomeStatus.ERROR,
    OutcomeStatus.WARNING,
    OutcomeStatus.RECOMPILE,
    OutcomeStatus.NEW,
    OutcomeStatus.SKIP,
)

# Summary line order
SUMMARY_ORDER = (
    OutcomeStatus.SKIP,
    OutcomeStatus.RECOMPILE,
    OutcomeStatus.NEW,
    OutcomeStatus.WARNING,
    OutcomeStatus.ERROR,
)


def classify_compiled(
    had_record: bool,
    warning_text: str,
    secondary_failed: bool,
) -> OutcomeStatus:
    """
    Status of a job whose primary target compiled.

    Diagnostics on the primary target, or a failed secondary target,
    downgrade to WARNING.  Otherwise NEW when no prior cache record
    existed, RECOMPILE when one did.
    """
    if warning_text or secondary_failed:
        return OutcomeStatus.WARNING
    return OutcomeStatus.RECOMPILE if had_record else OutcomeStatus.NEW


def is_failure(status: OutcomeStatus) -> bool:
    return status == OutcomeStatus.ERROR
