"""
cases.domain.scoring — Dual-source evaluation scoring.

Formula
-------
.. math::

    \\text{grand} = 0.4 \\times \\sum \\text{user} + 0.6 \\times \\sum \\text{admin}

Absent sub-scores count as 0 in the sums.  All arithmetic is done in
``Decimal`` so that the same inputs always give the same exact total;
``grand_total_display`` is the 2-dp rounding shown to users.

Ranges
------
Every sub-score is an integer 1–5, except the user's form score (1–2).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from core.constants import SCORE_DISPLAY_DECIMALS
from core.domain.exceptions import ValidationError

USER_WEIGHT = Decimal("0.4")
ADMIN_WEIGHT = Decimal("0.6")

USER_BLOCK_KEYS: tuple[str, ...] = (
    "difficulty",
    "estimated_time",
    "impact",
    "urgency",
    "form_score",
)
ADMIN_BLOCK_KEYS: tuple[str, ...] = (
    "difficulty",
    "estimated_time",
    "impact",
    "urgency",
)

SUB_SCORE_RANGE: tuple[int, int] = (1, 5)
FORM_SCORE_RANGE: tuple[int, int] = (1, 2)

_DISPLAY_QUANTUM = Decimal(1).scaleb(-SCORE_DISPLAY_DECIMALS)


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of ``score()``.  ``grand_total`` is exact; display it via ``grand_total_display``."""

    user_total: int
    admin_total: int
    grand_total: Decimal
    is_fully_assessed: bool

    @property
    def grand_total_display(self) -> Decimal:
        return self.grand_total.quantize(_DISPLAY_QUANTUM, rounding=ROUND_HALF_UP)

    def as_dict(self) -> dict[str, Any]:
        return {
            "user_total": self.user_total,
            "admin_total": self.admin_total,
            "grand_total": self.grand_total_display,
            "is_fully_assessed": self.is_fully_assessed,
        }


def _block_total(block: Mapping[str, int | None], keys: tuple[str, ...]) -> int:
    return sum(block.get(key) or 0 for key in keys)


def is_fully_assessed(admin_block: Mapping[str, int | None]) -> bool:
    """True iff every admin sub-score is present, whatever its value."""
    return all(admin_block.get(key) is not None for key in ADMIN_BLOCK_KEYS)


def score(
    user_block: Mapping[str, int | None],
    admin_block: Mapping[str, int | None],
) -> ScoreResult:
    """
    Combine the two assessment blocks into a ``ScoreResult``.

    Parameters
    ----------
    user_block : Mapping[str, int | None]
        Keys from ``USER_BLOCK_KEYS``; missing or ``None`` counts as 0.
    admin_block : Mapping[str, int | None]
        Keys from ``ADMIN_BLOCK_KEYS``; missing or ``None`` counts as 0.

    Returns
    -------
    ScoreResult
    """
    user_total = _block_total(user_block, USER_BLOCK_KEYS)
    admin_total = _block_total(admin_block, ADMIN_BLOCK_KEYS)
    grand_total = user_total * USER_WEIGHT + admin_total * ADMIN_WEIGHT
    return ScoreResult(
        user_total=user_total,
        admin_total=admin_total,
        grand_total=grand_total,
        is_fully_assessed=is_fully_assessed(admin_block),
    )


def validate_sub_score(name: str, value: Any) -> None:
    """
    Reject a sub-score outside its range.

    ``None`` is accepted: it clears the sub-score back to "not assessed".

    Raises:
        ValidationError: ``value`` is not an integer within range.
    """
    if value is None:
        return
    low, high = FORM_SCORE_RANGE if name.endswith("form_score") else SUB_SCORE_RANGE
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ValidationError(
            f"'{name}' must be an integer between {low} and {high}.",
            field=name,
        )
