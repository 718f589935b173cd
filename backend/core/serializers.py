"""
Core app serializers.

**Response-only** serializers for the aggregated endpoints served by the
core app.  These serializers define the *output schema* for the dashboard,
system constants and notification views.

Architectural note
------------------
The dashboard and constants serializers never import models from other
apps.  They work exclusively with plain Python dicts / lists produced by
the service layer, keeping the core app decoupled from ``cases``.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  Dashboard Statistics
# ════════════════════════════════════════════════════════════════════

class CasesByStatusSerializer(serializers.Serializer):
    """
    Breakdown of case counts grouped by status.

    Example::

        {"status": "RECEIVED", "label": "Received", "count": 12}
    """

    status = serializers.CharField(help_text="Machine-readable status key.")
    label = serializers.CharField(help_text="Human-readable display label for the status.")
    count = serializers.IntegerField(help_text="Number of cases currently in this status.")


class CasesByKindSerializer(serializers.Serializer):
    """
    Breakdown of case counts grouped by kind.

    Example::

        {"kind": "incident", "label": "Incident", "count": 4}
    """

    kind = serializers.CharField(help_text="Machine-readable kind key.")
    label = serializers.CharField(help_text="Human-readable display label for the kind.")
    count = serializers.IntegerField(help_text="Number of cases of this kind.")


class DashboardStatsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/dashboard/``.

    Response shape::

        {
            "total_cases": 40,
            "open_cases": 12,
            "completed_cases": 25,
            "cancelled_cases": 3,
            "needs_evaluation": 7,
            "cases_by_status": [...],
            "cases_by_kind": [...]
        }
    """

    total_cases = serializers.IntegerField(help_text="Total number of cases.")
    open_cases = serializers.IntegerField(help_text="Cases RECEIVED or IN_PROGRESS.")
    completed_cases = serializers.IntegerField(help_text="Cases COMPLETED.")
    cancelled_cases = serializers.IntegerField(help_text="Cases CANCELLED.")
    needs_evaluation = serializers.IntegerField(
        help_text="Cases whose admin assessment is missing at least one sub-score.",
    )
    cases_by_status = CasesByStatusSerializer(many=True)
    cases_by_kind = CasesByKindSerializer(many=True)


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "RECEIVED", "label": "Received"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the UI.",
    )


class CaseKindItemSerializer(ChoiceItemSerializer):
    """A case kind with the rules that set it apart."""

    counterparty_role = serializers.CharField(help_text="customer, supplier or none.")
    counterparty_required = serializers.BooleanField()
    detail_keys = serializers.ListField(child=serializers.CharField())


class RangeSerializer(serializers.Serializer):
    min = serializers.IntegerField()
    max = serializers.IntegerField()


class ScoreWeightsSerializer(serializers.Serializer):
    user = serializers.CharField(help_text="Weight of the user total, as a decimal string.")
    admin = serializers.CharField(help_text="Weight of the admin total, as a decimal string.")
    display_decimals = serializers.IntegerField()


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Provides all system-wide choice enumerations so the frontend can
    dynamically build dropdowns, filters, and labels **without**
    hardcoding values.
    """

    case_kinds = CaseKindItemSerializer(many=True)
    case_statuses = ChoiceItemSerializer(many=True)
    sub_score_range = RangeSerializer()
    form_score_range = RangeSerializer()
    score_weights = ScoreWeightsSerializer()


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.

    Used by the Notification ViewSet to list and retrieve notifications
    for the authenticated user.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    event_type = serializers.CharField(read_only=True)
    title = serializers.CharField(
        read_only=True,
        help_text="Short notification title.",
    )
    message = serializers.CharField(
        read_only=True,
        help_text="Full notification message body.",
    )
    is_read = serializers.BooleanField(
        read_only=True,
        help_text="Whether the recipient has marked this notification as read.",
    )
    created_at = serializers.DateTimeField(
        read_only=True,
        help_text="When the notification was created.",
    )
    content_type = serializers.StringRelatedField(
        read_only=True,
        help_text="Related content type (if any).",
    )
    object_id = serializers.IntegerField(
        read_only=True,
        allow_null=True,
        help_text="PK of the related object (if any).",
    )


class UnreadCountSerializer(serializers.Serializer):
    unread_count = serializers.IntegerField(read_only=True)
