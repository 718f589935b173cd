"""
Cases app serializers.

Contains all Request and Response serializers for the Cases API.
Serializers handle field definitions, read/write constraints, and field-level
validation only.  **No business logic, status transitions, or score
calculations live here** — those belong in ``services.py`` and
``cases.domain``.

Structure
---------
1. Filter / query-param serializers
2. Case read serializers (list, detail, evaluation)
3. Case write serializers (create, partial update, admin evaluation)
4. Sub-resource serializers (comments, worklogs)
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from .domain.patch import ADMIN_SCORE_FIELDS, USER_SCORE_FIELDS
from .models import Case, CaseComment, CaseKind, CaseStatus, CaseWorklog


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseFilterSerializer(serializers.Serializer):
    """
    Validates and cleans query-parameter filters for ``GET /api/cases/``.

    All fields are optional.  The view passes the validated dict directly
    to ``CaseQueryService.get_filtered_queryset``.
    """

    kind = serializers.ChoiceField(choices=CaseKind.choices, required=False)
    status = serializers.ChoiceField(choices=CaseStatus.choices, required=False)
    requester = serializers.IntegerField(required=False, min_value=1, help_text="Requester employee PK.")
    handler = serializers.IntegerField(required=False, min_value=1, help_text="Handler employee PK.")
    needs_evaluation = serializers.BooleanField(
        required=False,
        allow_null=True,
        default=None,
        help_text="true: admin assessment incomplete; false: fully assessed.",
    )
    search = serializers.CharField(
        required=False,
        max_length=255,
        allow_blank=False,
        help_text="Free-text search against title, description and party names.",
    )


# ═══════════════════════════════════════════════════════════════════
#  2. Case Read Serializers
# ═══════════════════════════════════════════════════════════════════


class _PartySerializer(serializers.Serializer):
    """Employee or partner reference: ``{"id": 3, "name": "Jane Doe"}``."""

    id = serializers.IntegerField(read_only=True)
    name = serializers.SerializerMethodField()

    def get_name(self, obj: Any) -> str:
        return str(obj)


class EvaluationSerializer(serializers.Serializer):
    """
    Weighted score recomputed on every read.

    Example::

        {"user_total": 15, "admin_total": 15,
         "grand_total": "15.00", "is_fully_assessed": true}
    """

    user_total = serializers.IntegerField(read_only=True)
    admin_total = serializers.IntegerField(read_only=True)
    grand_total = serializers.DecimalField(
        source="grand_total_display",
        max_digits=8,
        decimal_places=2,
        read_only=True,
    )
    is_fully_assessed = serializers.BooleanField(read_only=True)


class CaseListSerializer(serializers.ModelSerializer):
    """Compact representation for the list endpoint."""

    kind_display = serializers.CharField(source="get_kind_display", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    requester = _PartySerializer(read_only=True)
    handler = _PartySerializer(read_only=True)
    evaluation = EvaluationSerializer(read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "kind",
            "kind_display",
            "title",
            "status",
            "status_display",
            "requester",
            "handler",
            "start_date",
            "end_date",
            "evaluation",
            "version",
            "created_at",
        ]
        read_only_fields = fields


class CaseDetailSerializer(serializers.ModelSerializer):
    """Full representation returned by every case endpoint."""

    kind_display = serializers.CharField(source="get_kind_display", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    requester = _PartySerializer(read_only=True)
    handler = _PartySerializer(read_only=True)
    counterparty = _PartySerializer(read_only=True, allow_null=True)
    evaluation = EvaluationSerializer(read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "kind",
            "kind_display",
            "title",
            "description",
            "requester",
            "handler",
            "counterparty",
            "status",
            "status_display",
            "start_date",
            "in_progress_at",
            "end_date",
            "notes",
            "crm_reference_code",
            "details",
            *USER_SCORE_FIELDS,
            "user_assessed_at",
            *ADMIN_SCORE_FIELDS,
            "admin_assessed_at",
            "admin_assessment_notes",
            "evaluation",
            "version",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  3. Case Write Serializers
# ═══════════════════════════════════════════════════════════════════


def _sub_score(**kwargs) -> serializers.IntegerField:
    # Range checks live in cases.domain.scoring so every write path shares them.
    return serializers.IntegerField(required=False, allow_null=True, **kwargs)


class CaseCreateSerializer(serializers.Serializer):
    """
    Input for ``POST /api/cases/``.

    Only shape is checked here.  Required-field, reference, status and
    date rules are enforced by ``CaseLifecycleService.create_case``.
    """

    kind = serializers.ChoiceField(choices=CaseKind.choices)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField()
    requester_id = serializers.IntegerField()
    handler_id = serializers.IntegerField()
    counterparty_id = serializers.IntegerField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=CaseStatus.choices, required=False)
    start_date = serializers.DateTimeField()
    in_progress_at = serializers.DateTimeField(required=False, allow_null=True)
    end_date = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    crm_reference_code = serializers.CharField(required=False, allow_blank=True, max_length=100)
    details = serializers.JSONField(required=False)

    user_difficulty_level = _sub_score()
    user_estimated_time = _sub_score()
    user_impact_level = _sub_score()
    user_urgency_level = _sub_score()
    user_form_score = _sub_score()


class _RejectUnknownKeysMixin:
    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(self.initial_data) - set(self.fields))
        if unknown:
            raise serializers.ValidationError(
                {name: ["This field cannot be changed."] for name in unknown}
            )
        return super().validate(attrs)


class CaseUpdateSerializer(_RejectUnknownKeysMixin, serializers.Serializer):
    """
    Input for ``PATCH /api/cases/{id}/``.

    Always used with ``partial=True``: keys the client did not send stay
    out of ``validated_data``, while an explicit ``null`` arrives as
    ``None`` and clears the field.
    """

    title = serializers.CharField(max_length=255)
    description = serializers.CharField()
    handler_id = serializers.IntegerField()
    counterparty_id = serializers.IntegerField(allow_null=True)
    status = serializers.ChoiceField(choices=CaseStatus.choices)
    start_date = serializers.DateTimeField()
    in_progress_at = serializers.DateTimeField(allow_null=True)
    end_date = serializers.DateTimeField(allow_null=True)
    notes = serializers.CharField(allow_blank=True, allow_null=True)
    crm_reference_code = serializers.CharField(allow_blank=True, allow_null=True, max_length=100)
    details = serializers.JSONField(allow_null=True)
    admin_assessment_notes = serializers.CharField(allow_blank=True, allow_null=True)

    user_difficulty_level = _sub_score()
    user_estimated_time = _sub_score()
    user_impact_level = _sub_score()
    user_urgency_level = _sub_score()
    user_form_score = _sub_score()

    admin_difficulty_level = _sub_score()
    admin_estimated_time = _sub_score()
    admin_impact_level = _sub_score()
    admin_urgency_level = _sub_score()

    expected_version = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Reject the update if the case has moved past this version.",
    )


class AdminEvaluationSerializer(serializers.Serializer):
    """Input for ``PUT /api/cases/{id}/evaluation/``; every sub-score is required."""

    admin_difficulty_level = serializers.IntegerField()
    admin_estimated_time = serializers.IntegerField()
    admin_impact_level = serializers.IntegerField()
    admin_urgency_level = serializers.IntegerField()
    admin_assessment_notes = serializers.CharField(required=False, allow_blank=True)
    expected_version = serializers.IntegerField(required=False, min_value=1)


# ═══════════════════════════════════════════════════════════════════
#  4. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseCommentSerializer(serializers.ModelSerializer):
    author = serializers.StringRelatedField(read_only=True)

    class Meta:
        model = CaseComment
        fields = ["id", "case", "author", "content", "created_at"]
        read_only_fields = fields


class CaseCommentCreateSerializer(serializers.Serializer):
    content = serializers.CharField()


class CaseWorklogSerializer(serializers.ModelSerializer):
    author = serializers.StringRelatedField(read_only=True)

    class Meta:
        model = CaseWorklog
        fields = ["id", "case", "author", "duration_minutes", "description", "created_at"]
        read_only_fields = fields


class CaseWorklogCreateSerializer(serializers.Serializer):
    duration_minutes = serializers.IntegerField(min_value=1)
    description = serializers.CharField(required=False, allow_blank=True, default="")
