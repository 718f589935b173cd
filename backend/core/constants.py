"""
Core constants — **Single Source of Truth** for project-wide magic numbers.

Any formula or business rule that references a numeric constant should
import it from here instead of hardcoding.  This avoids drift between
apps that use the same value.
"""

# ── Evaluation display ──────────────────────────────────────────────
# Grand totals are stored exactly and rounded half-up to this many
# decimal places when shown.
SCORE_DISPLAY_DECIMALS: int = 2

# ── Overdue reminders ───────────────────────────────────────────────
# Default age (hours since start_date) after which an open case is
# reported to its handler.  Overridable via CASES_OVERDUE_THRESHOLD_HOURS.
OVERDUE_THRESHOLD_HOURS: int = 18
