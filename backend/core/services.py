"""
Dashboard counters, the constants catalogue and the notification inbox.

``core`` reads case rows but must not import ``cases`` at module load:
``cases`` imports ``core.domain`` on startup. Models from other apps are
resolved inside methods, through ``apps.get_model`` or a local import.
"""

from __future__ import annotations

from typing import Any

from django.apps import apps
from django.db.models import Count, Q, QuerySet

from core.constants import SCORE_DISPLAY_DECIMALS
from core.domain.exceptions import NotFound


# ════════════════════════════════════════════════════════════════════
#  Dashboard Aggregation Service
# ════════════════════════════════════════════════════════════════════

class DashboardAggregationService:
    """
    Builds the payload of ``DashboardStatsSerializer``. Counts are
    company-wide.
    """

    def __init__(self, user: Any) -> None:
        self.user = user

    # ── Public API ──────────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        """Return the full dashboard statistics dictionary."""
        from cases.models import CaseStatus
        from cases.services import CaseQueryService

        case_qs = self._get_case_queryset()

        # Single aggregate query for scalar counts
        aggregates = case_qs.aggregate(
            total_cases=Count("id"),
            open_cases=Count(
                "id",
                filter=Q(status__in=[CaseStatus.RECEIVED, CaseStatus.IN_PROGRESS]),
            ),
            completed_cases=Count(
                "id",
                filter=Q(status=CaseStatus.COMPLETED),
            ),
            cancelled_cases=Count(
                "id",
                filter=Q(status=CaseStatus.CANCELLED),
            ),
            needs_evaluation=Count(
                "id",
                filter=CaseQueryService.needs_evaluation_q(),
            ),
        )

        return {
            **aggregates,
            "cases_by_status": self._get_cases_by_status(case_qs),
            "cases_by_kind": self._get_cases_by_kind(case_qs),
        }

    # ── Private helpers ─────────────────────────────────────────────

    def _get_case_queryset(self) -> QuerySet:
        Case = apps.get_model("cases", "Case")
        return Case.objects.all()

    def _get_cases_by_status(self, case_qs: QuerySet) -> list[dict[str, Any]]:
        """Group ``case_qs`` by status and return a list of dicts."""
        from cases.models import CaseStatus

        status_label_map = dict(CaseStatus.choices)
        rows = (
            case_qs
            .values("status")
            .annotate(count=Count("id"))
            .order_by("status")
        )
        return [
            {
                "status": row["status"],
                "label": status_label_map.get(row["status"], row["status"]),
                "count": row["count"],
            }
            for row in rows
        ]

    def _get_cases_by_kind(self, case_qs: QuerySet) -> list[dict[str, Any]]:
        """Group ``case_qs`` by kind and return a list of dicts."""
        from cases.models import CaseKind

        kind_label_map = dict(CaseKind.choices)
        rows = (
            case_qs
            .values("kind")
            .annotate(count=Count("id"))
            .order_by("kind")
        )
        return [
            {
                "kind": row["kind"],
                "label": kind_label_map.get(row["kind"], row["kind"]),
                "count": row["count"],
            }
            for row in rows
        ]


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations and scoring parameters
    into a single dict for the frontend.

    Nothing here depends on the caller.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from cases.domain import scoring
        from cases.models import CaseStatus
        from cases.registry import CASE_KIND_REGISTRY

        to_list = SystemConstantsService._choices_to_list

        return {
            "case_kinds": [spec.as_dict() for spec in CASE_KIND_REGISTRY.values()],
            "case_statuses": to_list(CaseStatus),
            "sub_score_range": {
                "min": scoring.SUB_SCORE_RANGE[0],
                "max": scoring.SUB_SCORE_RANGE[1],
            },
            "form_score_range": {
                "min": scoring.FORM_SCORE_RANGE[0],
                "max": scoring.FORM_SCORE_RANGE[1],
            },
            "score_weights": {
                "user": str(scoring.USER_WEIGHT),
                "admin": str(scoring.ADMIN_WEIGHT),
                "display_decimals": SCORE_DISPLAY_DECIMALS,
            },
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` or ``IntegerChoices`` class to
        a list of ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Service
# ═══════════════════════════════════════════════════════════════════

class NotificationService:
    """
    Read side of the inbox, always scoped to ``user``.
    """

    def __init__(self, user: Any) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet:
        """Return notifications for ``self.user``, ordered most recent first."""
        from core.models import Notification

        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .select_related("content_type")
            .order_by("-created_at")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def unread_count(self) -> int:
        return self.list_notifications(unread_only=True).count()

    def mark_as_read(self, notification_id: int) -> Any:
        """
        Mark a single notification as read.

        Raises:
            NotFound: The notification does not exist or belongs to
                      someone else.
        """
        from core.models import Notification

        try:
            notification = Notification.objects.get(
                pk=notification_id,
                recipient=self.user,
            )
        except (Notification.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Notification with id {notification_id} does not exist.")
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
        return notification
