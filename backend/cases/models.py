"""
Cases app models.

One ``Case`` table serves all seven case kinds.  The fields every kind
shares are real columns; what a kind adds on top lives in ``details``
(validated against ``cases.registry``).  Each case carries two
assessment blocks, the requester's and the administrator's, which
``cases.domain.scoring`` turns into a weighted total on every read.

Rows are only ever written through ``cases.services``.
"""

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel

from .domain import scoring, transitions


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class CaseKind(models.TextChoices):
    """The registered case kinds (see ``cases.registry``)."""

    INTERNAL = "internal", "Internal"
    DELIVERY = "delivery", "Delivery"
    RECEIVING = "receiving", "Receiving"
    INCIDENT = "incident", "Incident"
    MAINTENANCE = "maintenance", "Maintenance"
    WARRANTY = "warranty", "Warranty"
    DEPLOYMENT = "deployment", "Deployment"


class CaseStatus(models.TextChoices):
    """
    Shared lifecycle of every case kind.

    ``COMPLETED`` and ``CANCELLED`` are terminal.
    """

    RECEIVED = transitions.RECEIVED, "Received"
    IN_PROGRESS = transitions.IN_PROGRESS, "In Progress"
    COMPLETED = transitions.COMPLETED, "Completed"
    CANCELLED = transitions.CANCELLED, "Cancelled"


def _sub_score_field(label):
    return models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name=label,
    )


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Case(TimeStampedModel):
    """
    A trackable unit of IT-service work.

    * ``kind`` and ``requester`` are fixed at creation.
    * ``end_date`` is strictly later than ``start_date`` and
      ``in_progress_at`` whenever it is present.
    * ``version`` increases by one on every successful update and is
      used as an optimistic-lock token.
    """

    kind = models.CharField(
        max_length=20,
        choices=CaseKind.choices,
        verbose_name="Kind",
        db_index=True,
    )
    title = models.CharField(
        max_length=255,
        verbose_name="Title",
    )
    description = models.TextField(
        verbose_name="Description",
    )

    # ── Parties ─────────────────────────────────────────────────────
    requester = models.ForeignKey(
        "personnel.Employee",
        on_delete=models.PROTECT,
        related_name="requested_cases",
        verbose_name="Requester",
    )
    handler = models.ForeignKey(
        "personnel.Employee",
        on_delete=models.PROTECT,
        related_name="handled_cases",
        verbose_name="Handler",
    )
    counterparty = models.ForeignKey(
        "personnel.Partner",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cases",
        verbose_name="Counterparty",
        help_text="Customer or supplier, depending on the case kind.",
    )

    # ── Lifecycle ───────────────────────────────────────────────────
    status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        default=CaseStatus.RECEIVED,
        verbose_name="Status",
        db_index=True,
    )
    start_date = models.DateTimeField(verbose_name="Start Date")
    in_progress_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="In Progress At",
    )
    end_date = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="End Date",
    )

    # ── Free-form ───────────────────────────────────────────────────
    notes = models.TextField(blank=True, default="", verbose_name="Notes")
    crm_reference_code = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name="CRM Reference Code",
    )
    details = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Kind-specific Details",
    )

    # ── User assessment block ───────────────────────────────────────
    user_difficulty_level = _sub_score_field("User Difficulty")
    user_estimated_time = _sub_score_field("User Estimated Time")
    user_impact_level = _sub_score_field("User Impact")
    user_urgency_level = _sub_score_field("User Urgency")
    user_form_score = _sub_score_field("User Form Score")
    user_assessed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="User Assessed At",
    )

    # ── Admin assessment block ──────────────────────────────────────
    admin_difficulty_level = _sub_score_field("Admin Difficulty")
    admin_estimated_time = _sub_score_field("Admin Estimated Time")
    admin_impact_level = _sub_score_field("Admin Impact")
    admin_urgency_level = _sub_score_field("Admin Urgency")
    admin_assessed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Admin Assessed At",
    )
    admin_assessment_notes = models.TextField(
        blank=True,
        default="",
        verbose_name="Admin Assessment Notes",
    )

    version = models.PositiveIntegerField(default=1, verbose_name="Version")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_cases",
        verbose_name="Created By",
    )

    class Meta:
        verbose_name = "Case"
        verbose_name_plural = "Cases"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["kind", "status"]),
        ]

    def __str__(self):
        return f"Case #{self.pk} [{self.kind}] {self.title}"

    @property
    def user_assessment(self) -> dict:
        return {
            "difficulty": self.user_difficulty_level,
            "estimated_time": self.user_estimated_time,
            "impact": self.user_impact_level,
            "urgency": self.user_urgency_level,
            "form_score": self.user_form_score,
        }

    @property
    def admin_assessment(self) -> dict:
        return {
            "difficulty": self.admin_difficulty_level,
            "estimated_time": self.admin_estimated_time,
            "impact": self.admin_impact_level,
            "urgency": self.admin_urgency_level,
        }

    @property
    def evaluation(self) -> scoring.ScoreResult:
        """Weighted score, recomputed from the stored sub-scores."""
        return scoring.score(self.user_assessment, self.admin_assessment)


class CaseComment(TimeStampedModel):
    """A note left on a case.  Deleted together with the case."""

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="comments",
        verbose_name="Case",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="case_comments",
        verbose_name="Author",
    )
    content = models.TextField(verbose_name="Content")

    class Meta:
        verbose_name = "Case Comment"
        verbose_name_plural = "Case Comments"
        ordering = ["created_at"]

    def __str__(self):
        return f"Comment #{self.pk} on Case #{self.case_id}"


class CaseWorklog(TimeStampedModel):
    """Time spent on a case.  Deleted together with the case."""

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="worklogs",
        verbose_name="Case",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="case_worklogs",
        verbose_name="Author",
    )
    duration_minutes = models.PositiveIntegerField(verbose_name="Duration (minutes)")
    description = models.TextField(blank=True, default="", verbose_name="Description")

    class Meta:
        verbose_name = "Case Worklog"
        verbose_name_plural = "Case Worklogs"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.duration_minutes} min on Case #{self.case_id}"
