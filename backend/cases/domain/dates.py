"""
cases.domain.dates — Date invariant validator.

An end date, when present, must be strictly later than the start date
and, if the case was set in progress, strictly later than that moment
too.  Past dates are allowed everywhere.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core.domain.exceptions import EndBeforeInProgress, EndBeforeStart


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def validate_case_dates(
    start_date: datetime,
    end_date: datetime | None,
    in_progress_at: datetime | None = None,
) -> None:
    """
    Check the effective dates of a case.

    Parameters
    ----------
    start_date : datetime
        The start date after the patch is applied.
    end_date : datetime | None
        The end date after the patch is applied.  ``None`` or ``""``
        means there is no end date and the check passes.
    in_progress_at : datetime | None
        The in-progress timestamp after the patch is applied.

    Raises
    ------
    EndBeforeStart
        ``end_date <= start_date``.
    EndBeforeInProgress
        ``end_date <= in_progress_at``.
    """
    if not _is_present(end_date):
        return
    if end_date <= start_date:
        raise EndBeforeStart()
    if _is_present(in_progress_at) and end_date <= in_progress_at:
        raise EndBeforeInProgress()
