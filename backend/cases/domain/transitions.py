"""
cases.domain.transitions — Case status state machine.

::

    RECEIVED ──► IN_PROGRESS ──► COMPLETED
        │             │
        └─────────────┴────────► CANCELLED

``COMPLETED`` and ``CANCELLED`` are terminal.

Rules applied by ``apply_update``
---------------------------------
1. An explicit status in the patch is accepted as sent.  Edges are only
   checked when ``strict=True`` (``CASES_STRICT_STATUS_TRANSITIONS``).
2. A non-empty ``end_date`` in the patch promotes a non-terminal result
   to ``COMPLETED``.  An explicit ``CANCELLED`` is left alone.
3. Setting ``in_progress_at`` never changes the status by itself.
4. Moving into ``IN_PROGRESS`` stamps ``in_progress_at = now`` when the
   case has none, the patch sets none, and no end date is in effect.

The engine never touches the database and does not validate dates;
``cases.domain.dates`` runs first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.domain.exceptions import InvalidTransition, ValidationError

from .patch import UNSET

RECEIVED = "RECEIVED"
IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"

STATUSES: tuple[str, ...] = (RECEIVED, IN_PROGRESS, COMPLETED, CANCELLED)
OPEN_STATUSES: frozenset[str] = frozenset({RECEIVED, IN_PROGRESS})
TERMINAL_STATUSES: frozenset[str] = frozenset({COMPLETED, CANCELLED})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    RECEIVED: frozenset({IN_PROGRESS, COMPLETED, CANCELLED}),
    IN_PROGRESS: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class TransitionResult:
    """Resolved status plus any fields the transition derived."""

    status: str
    derived: dict[str, Any] = field(default_factory=dict)
    auto_promoted: bool = False


def _has_value(value: Any) -> bool:
    return value is not UNSET and value is not None and value != ""


def check_edge(current: str, target: str) -> None:
    """
    Raise ``InvalidTransition`` unless ``current -> target`` is an edge.

    Staying in the same status is always allowed.
    """
    if target == current:
        return
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        reason = (
            "The case is already closed."
            if current in TERMINAL_STATUSES
            else f"Allowed targets: {', '.join(sorted(ALLOWED_TRANSITIONS[current]))}."
        )
        raise InvalidTransition(current=current, target=target, reason=reason)


def apply_update(
    *,
    current_status: str,
    current_in_progress_at: datetime | None = None,
    current_end_date: datetime | None = None,
    status: Any = UNSET,
    end_date: Any = UNSET,
    in_progress_at: Any = UNSET,
    now: datetime,
    strict: bool = False,
) -> TransitionResult:
    """
    Resolve the status a case ends up in after a patch.

    Parameters
    ----------
    current_status, current_in_progress_at, current_end_date :
        Values stored on the case before the patch.
    status, end_date, in_progress_at :
        Values from the patch, or ``UNSET`` when the key was not sent.
    now : datetime
        Clock reading used for derived timestamps.
    strict : bool
        Enforce ``ALLOWED_TRANSITIONS`` on the final status.

    Returns
    -------
    TransitionResult
        ``derived`` holds ``in_progress_at`` when rule 4 fired.

    Raises
    ------
    ValidationError
        ``status`` is not one of ``STATUSES``.
    InvalidTransition
        Only with ``strict=True``, for an edge outside the map.
    """
    if status is not UNSET and status not in STATUSES:
        raise ValidationError(
            f"'{status}' is not a valid case status.", field="status",
        )

    target = current_status if status is UNSET else status

    auto_promoted = False
    if _has_value(end_date) and target not in TERMINAL_STATUSES:
        target = COMPLETED
        auto_promoted = True

    if strict:
        check_edge(current_status, target)

    derived: dict[str, Any] = {}
    effective_end = current_end_date if end_date is UNSET else end_date
    if (
        target == IN_PROGRESS
        and target != current_status
        and current_in_progress_at is None
        and in_progress_at is UNSET
        and not _has_value(effective_end)
    ):
        derived["in_progress_at"] = now

    return TransitionResult(status=target, derived=derived, auto_promoted=auto_promoted)
