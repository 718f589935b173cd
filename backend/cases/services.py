"""
Cases app Service Layer.

This module is the **single source of truth** for all business logic
in the ``cases`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``CaseQueryService``         — Filtered queryset construction.
- ``CaseLifecycleService``     — Create / update / delete / transitions.
- ``CaseCollaborationService`` — Comments and worklogs on a case.
- ``OverdueCaseService``       — Reminders for cases left open too long.

Every mutation follows the same order::

    lock row ─► version check ─► permission check ─► validate sub-scores
      ─► validate dates ─► resolve status ─► merge patch ─► stamp assessments ─► save

and any failure before ``save`` leaves the row untouched.

Post-commit fan-out
-------------------
A successful create schedules ``cases.tasks.dispatch_case_created`` via
``transaction.on_commit``.  The task notifies every active
administrator and posts the chat announcement; nothing it does can
roll back or fail the creating request.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable

from django.conf import settings
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from core.constants import OVERDUE_THRESHOLD_HOURS
from core.domain.exceptions import (
    InvalidTransition,
    NotFound,
    PermissionDenied,
    StaleVersion,
    ValidationError,
)
from core.domain.notifications import EVENT_CASE_OVERDUE, NotificationService
from core.domain.transactions import atomic_write, lock_for_update
from personnel.services import PersonnelDirectory

from .domain import scoring, transitions
from .domain.dates import validate_case_dates
from .domain.patch import ADMIN_SCORE_FIELDS, USER_SCORE_FIELDS, UNSET, CasePatch
from .models import Case, CaseComment, CaseWorklog
from .registry import CounterpartyRole, get_kind_spec, validate_details

logger = logging.getLogger(__name__)

#: Text columns stored as ``""`` rather than NULL; a null in a patch clears them.
_BLANKABLE_TEXT_FIELDS: frozenset[str] = frozenset({
    "notes",
    "crm_reference_code",
    "admin_assessment_notes",
})

#: Fields only staff may write.
_ADMIN_ONLY_FIELDS: tuple[str, ...] = (*ADMIN_SCORE_FIELDS, "admin_assessment_notes")


def _strict_transitions() -> bool:
    return bool(getattr(settings, "CASES_STRICT_STATUS_TRANSITIONS", False))


def _changes_any(case: Any, patch: CasePatch, names: tuple[str, ...]) -> bool:
    """True when ``patch`` sets one of ``names`` to a value other than the stored one."""
    return any(
        patch.is_set(name) and patch.value(name) != getattr(case, name)
        for name in names
    )


# ═══════════════════════════════════════════════════════════════════
#  Case Query Service
# ═══════════════════════════════════════════════════════════════════


class CaseQueryService:
    """
    Constructs filtered querysets for listing cases.

    All heavy query concerns (filter assembly, ordering) live here so the
    view stays thin.
    """

    @staticmethod
    def base_queryset() -> QuerySet:
        return Case.objects.select_related(
            "requester", "handler", "counterparty", "created_by",
        )

    @staticmethod
    def get_filtered_queryset(filters: dict[str, Any]) -> QuerySet:
        """
        Build a filtered queryset of ``Case`` objects.

        Parameters
        ----------
        filters : dict
            Cleaned query-parameter dict from ``CaseFilterSerializer``.
            Supported keys:
            - ``kind``             : str  (``CaseKind`` value)
            - ``status``           : str  (``CaseStatus`` value)
            - ``requester``        : int  (employee PK)
            - ``handler``          : int  (employee PK)
            - ``needs_evaluation`` : bool (admin block incomplete)
            - ``search``           : str  (title, description, party names)

        Returns
        -------
        QuerySet[Case]
        """
        qs = CaseQueryService.base_queryset()

        if filters.get("kind"):
            qs = qs.filter(kind=filters["kind"])
        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        if filters.get("requester"):
            qs = qs.filter(requester_id=filters["requester"])
        if filters.get("handler"):
            qs = qs.filter(handler_id=filters["handler"])

        needs_evaluation = filters.get("needs_evaluation")
        if needs_evaluation is not None:
            incomplete = CaseQueryService.needs_evaluation_q()
            qs = qs.filter(incomplete) if needs_evaluation else qs.exclude(incomplete)

        search = (filters.get("search") or "").strip()
        if search:
            qs = qs.filter(
                Q(title__icontains=search)
                | Q(description__icontains=search)
                | Q(requester__full_name__icontains=search)
                | Q(handler__full_name__icontains=search)
            )

        return qs.order_by("-created_at")

    @staticmethod
    def needs_evaluation_q() -> Q:
        """``Q`` matching cases whose admin block is missing a sub-score."""
        q = Q()
        for name in ADMIN_SCORE_FIELDS:
            q |= Q(**{f"{name}__isnull": True})
        return q

    @staticmethod
    def get_case_detail(case_id: int) -> Case:
        """
        Raises:
            NotFound: No case has ``case_id``.
        """
        try:
            return CaseQueryService.base_queryset().get(pk=case_id)
        except (Case.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Case with id {case_id} does not exist.")


# ═══════════════════════════════════════════════════════════════════
#  Case Lifecycle Service
# ═══════════════════════════════════════════════════════════════════


class CaseLifecycleService:
    """
    The only writer of ``Case`` rows.

    Orchestrates the date validator, the status transition engine and the
    scoring engine around every create, update and delete.
    """

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    def create_case(validated_data: dict[str, Any], requesting_user: Any) -> Case:
        """
        Create a case in ``RECEIVED`` (or ``IN_PROGRESS``) status.

        Parameters
        ----------
        validated_data : dict
            Cleaned data from ``CaseCreateSerializer``.
            Required: ``kind``, ``title``, ``description``,
            ``requester_id``, ``handler_id``, ``start_date``.
            Optional: ``counterparty_id``, ``status``, ``in_progress_at``,
            ``notes``, ``crm_reference_code``, ``details`` and the five
            user sub-scores.
        requesting_user : User
            Stored as ``created_by``.

        Returns
        -------
        Case

        Raises
        ------
        ValidationError
            Missing required field, terminal status, an end date, bad
            details or sub-score.
        ReferenceNotFound
            Requester, handler or counterparty id does not resolve.
        DateError
            Inconsistent ``start_date`` / ``in_progress_at``.
        PersistenceError
            The insert failed.
        """
        data = dict(validated_data)

        for name in ("kind", "title", "description", "requester_id", "handler_id", "start_date"):
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"'{name}' is required.", field=name)

        spec = get_kind_spec(data["kind"])

        if data.get("end_date") not in (None, ""):
            raise ValidationError(
                "A case cannot be created with an end date; close it instead.",
                field="end_date",
            )
        requested_status = data.get("status") or transitions.RECEIVED
        if requested_status in transitions.TERMINAL_STATUSES:
            raise ValidationError(
                f"A case cannot be created in status '{requested_status}'.",
                field="status",
            )

        for name in USER_SCORE_FIELDS:
            scoring.validate_sub_score(name, data.get(name))
        details = validate_details(spec.kind, data.get("details"))

        requester = PersonnelDirectory.resolve_employee(data["requester_id"], field="requester")
        handler = PersonnelDirectory.resolve_employee(data["handler_id"], field="handler")
        counterparty = CaseLifecycleService._resolve_counterparty(
            spec.kind, data.get("counterparty_id"),
        )

        now = timezone.now()
        in_progress_at = data.get("in_progress_at")
        validate_case_dates(data["start_date"], None, in_progress_at)
        result = transitions.apply_update(
            current_status=transitions.RECEIVED,
            status=requested_status,
            in_progress_at=UNSET if in_progress_at is None else in_progress_at,
            now=now,
        )

        case = Case(
            kind=spec.kind,
            title=data["title"].strip(),
            description=data["description"].strip(),
            requester=requester,
            handler=handler,
            counterparty=counterparty,
            status=result.status,
            start_date=data["start_date"],
            in_progress_at=result.derived.get("in_progress_at", in_progress_at),
            notes=data.get("notes") or "",
            crm_reference_code=data.get("crm_reference_code") or "",
            details=details,
            created_by=requesting_user if getattr(requesting_user, "pk", None) else None,
        )
        user_scores = {name: data.get(name) for name in USER_SCORE_FIELDS}
        for name, value in user_scores.items():
            setattr(case, name, value)
        if any(value is not None for value in user_scores.values()):
            case.user_assessed_at = now

        with atomic_write("create of %s case", spec.kind):
            case.save()
            case_id = case.pk
            transaction.on_commit(lambda: _enqueue_case_created(case_id))

        logger.info(
            "Case %s [%s] created by %s (status %s)",
            case.pk, case.kind, requesting_user, case.status,
        )
        return case

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    def update_case(case_id: int, patch: CasePatch, requesting_user: Any) -> Case:
        """
        Apply a partial update.

        Keys absent from ``patch`` are left alone; keys sent as ``None``
        are cleared.  A non-empty ``end_date`` promotes an open case to
        ``COMPLETED`` unless the patch explicitly cancels it.

        Raises
        ------
        NotFound
            No case has ``case_id``.
        StaleVersion
            ``patch.expected_version`` does not match the stored version.
        PermissionDenied
            A non-staff user touched the admin assessment block.
        ValidationError, ReferenceNotFound, DateError
            Invalid patch content.
        InvalidTransition
            Only with ``CASES_STRICT_STATUS_TRANSITIONS``.
        PersistenceError
            The write failed; nothing was changed.
        """
        return CaseLifecycleService._mutate(
            case_id, patch, requesting_user, action="updated",
        )

    @staticmethod
    def set_in_progress(case_id: int, requesting_user: Any) -> Case:
        """
        Move a case to ``IN_PROGRESS``. ``in_progress_at`` is stamped with
        ``now`` only when the case has none, so a repeated call keeps the
        time work actually started.

        Raises:
            InvalidTransition: The case is already completed or cancelled.
        """
        def guard(case: Case) -> None:
            if case.status in transitions.TERMINAL_STATUSES:
                raise InvalidTransition(
                    current=case.status,
                    target=transitions.IN_PROGRESS,
                    reason="The case is already closed.",
                )

        now = timezone.now()

        def build_patch(case: Case) -> CasePatch:
            values: dict[str, Any] = {"status": transitions.IN_PROGRESS}
            if case.in_progress_at is None:
                values["in_progress_at"] = now
            return CasePatch(values)

        return CaseLifecycleService._mutate(
            case_id, build_patch, requesting_user,
            guard=guard, now=now, action="set in progress",
        )

    @staticmethod
    def close_case(case_id: int, requesting_user: Any) -> Case:
        """
        Complete a case with ``end_date = now``.

        Raises:
            DateError: ``now`` is not after the start date or the
                       in-progress timestamp.
        """
        now = timezone.now()
        patch = CasePatch({"status": transitions.COMPLETED, "end_date": now})
        return CaseLifecycleService._mutate(
            case_id, patch, requesting_user, now=now, action="closed",
        )

    @staticmethod
    def submit_admin_evaluation(
        case_id: int,
        evaluation: dict[str, Any],
        requesting_user: Any,
    ) -> Case:
        """
        Record a complete administrator assessment.

        All four admin sub-scores are required; ``admin_assessment_notes``
        is optional.

        Raises:
            ValidationError:  A sub-score is missing or out of range.
            PermissionDenied: ``requesting_user`` is not staff.
        """
        missing = [name for name in ADMIN_SCORE_FIELDS if evaluation.get(name) is None]
        if missing:
            raise ValidationError(
                f"All admin sub-scores are required; missing: {', '.join(missing)}.",
                field=missing[0],
            )
        values = {name: evaluation[name] for name in ADMIN_SCORE_FIELDS}
        if "admin_assessment_notes" in evaluation:
            values["admin_assessment_notes"] = evaluation["admin_assessment_notes"]
        return CaseLifecycleService._mutate(
            case_id,
            CasePatch(values, expected_version=evaluation.get("expected_version")),
            requesting_user,
            action="evaluated",
        )

    # ── Delete ──────────────────────────────────────────────────────

    @staticmethod
    def delete_case(case_id: int, requesting_user: Any) -> None:
        """
        Hard-delete a case together with its comments and worklogs.

        The three deletes run in one transaction: either all of them
        happen or none does.

        Raises:
            NotFound:         No case has ``case_id``.
            PersistenceError: A delete failed; everything was rolled back.
        """
        with atomic_write("delete of case %s", case_id):
            case = lock_for_update(Case, case_id)
            kind = case.kind
            comments, _ = CaseComment.objects.filter(case_id=case.pk).delete()
            worklogs, _ = CaseWorklog.objects.filter(case_id=case.pk).delete()
            case.delete()

        logger.info(
            "Case %s [%s] deleted by %s (%d comment(s), %d worklog(s))",
            case_id, kind, requesting_user, comments, worklogs,
        )

    # ── Internals ───────────────────────────────────────────────────

    @staticmethod
    def _mutate(
        case_id: int,
        patch: CasePatch | Callable[[Case], CasePatch],
        requesting_user: Any,
        *,
        guard: Callable[[Case], None] | None = None,
        now=None,
        action: str,
    ) -> Case:
        now = now or timezone.now()

        with atomic_write("update of case %s", case_id):
            case = lock_for_update(Case, case_id)
            if callable(patch):
                patch = patch(case)

            if patch.expected_version is not None and patch.expected_version != case.version:
                raise StaleVersion(expected=patch.expected_version, actual=case.version)
            if guard is not None:
                guard(case)

            if patch.touches(_ADMIN_ONLY_FIELDS) and not getattr(requesting_user, "is_staff", False):
                raise PermissionDenied("Only administrators can change the admin assessment.")
            for name in (*USER_SCORE_FIELDS, *ADMIN_SCORE_FIELDS):
                if patch.is_set(name):
                    scoring.validate_sub_score(name, patch.value(name))

            previous_status = case.status
            validate_case_dates(
                patch.value("start_date", case.start_date),
                patch.value("end_date", case.end_date),
                patch.value("in_progress_at", case.in_progress_at),
            )
            result = transitions.apply_update(
                current_status=case.status,
                current_in_progress_at=case.in_progress_at,
                current_end_date=case.end_date,
                status=patch.value("status"),
                end_date=patch.value("end_date"),
                in_progress_at=patch.value("in_progress_at"),
                now=now,
                strict=_strict_transitions(),
            )

            user_block_changed = _changes_any(case, patch, USER_SCORE_FIELDS)
            admin_block_changed = _changes_any(case, patch, ADMIN_SCORE_FIELDS)

            CaseLifecycleService._merge(case, patch)
            case.status = result.status
            for name, value in result.derived.items():
                setattr(case, name, value)

            if user_block_changed:
                case.user_assessed_at = now
            if admin_block_changed:
                case.admin_assessed_at = now

            case.version += 1
            case.save()

        logger.info(
            "Case %s [%s] %s by %s (status %s -> %s%s)",
            case.pk, case.kind, action, requesting_user,
            previous_status, case.status,
            ", auto-promoted" if result.auto_promoted else "",
        )
        return case

    @staticmethod
    def _merge(case: Case, patch: CasePatch) -> None:
        """Copy every key present in ``patch`` onto ``case``."""
        for name, value in patch.items():
            if name == "status":
                continue  # resolved by the transition engine
            if name == "handler_id":
                case.handler = PersonnelDirectory.resolve_employee(value, field="handler")
            elif name == "counterparty_id":
                case.counterparty = CaseLifecycleService._resolve_counterparty(case.kind, value)
            elif name == "details":
                case.details = validate_details(case.kind, value)
            elif name in _BLANKABLE_TEXT_FIELDS:
                setattr(case, name, value or "")
            elif name in ("title", "description"):
                setattr(case, name, value.strip())
            else:
                setattr(case, name, value)

    @staticmethod
    def _resolve_counterparty(kind: str, counterparty_id: Any):
        spec = get_kind_spec(kind)
        if counterparty_id is None:
            if spec.counterparty_required:
                raise ValidationError(
                    f"A {spec.label.lower()} case needs a {spec.counterparty_role}.",
                    field="counterparty_id",
                )
            return None
        if spec.counterparty_role == CounterpartyRole.NONE:
            raise ValidationError(
                f"A {spec.label.lower()} case has no counterparty.",
                field="counterparty_id",
            )
        return PersonnelDirectory.resolve_partner(counterparty_id, field=spec.counterparty_role)


def _enqueue_case_created(case_id: int) -> None:
    """Hand the creation fan-out to the worker; never raises."""
    from .tasks import dispatch_case_created

    try:
        dispatch_case_created.delay(case_id)
    except Exception:
        logger.exception("Could not enqueue the case_created fan-out for case %s", case_id)


# ═══════════════════════════════════════════════════════════════════
#  Case Collaboration Service (comments & worklogs)
# ═══════════════════════════════════════════════════════════════════


class CaseCollaborationService:
    """Child rows attached to a case.  They go away with the case."""

    @staticmethod
    def list_comments(case_id: int) -> QuerySet:
        case = CaseQueryService.get_case_detail(case_id)
        return case.comments.select_related("author").order_by("created_at")

    @staticmethod
    def add_comment(case_id: int, author: Any, content: str) -> CaseComment:
        """
        Raises:
            NotFound:        No case has ``case_id``.
            ValidationError: ``content`` is blank.
        """
        if not (content or "").strip():
            raise ValidationError("A comment cannot be empty.", field="content")
        case = CaseQueryService.get_case_detail(case_id)
        with atomic_write("comment on case %s", case_id):
            comment = CaseComment.objects.create(case=case, author=author, content=content.strip())
        logger.info("Comment %s added to case %s by %s", comment.pk, case_id, author)
        return comment

    @staticmethod
    def list_worklogs(case_id: int) -> QuerySet:
        case = CaseQueryService.get_case_detail(case_id)
        return case.worklogs.select_related("author").order_by("created_at")

    @staticmethod
    def add_worklog(
        case_id: int,
        author: Any,
        duration_minutes: int,
        description: str = "",
    ) -> CaseWorklog:
        """
        Raises:
            NotFound:        No case has ``case_id``.
            ValidationError: ``duration_minutes`` is not positive.
        """
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise ValidationError("Duration must be a positive number of minutes.", field="duration_minutes")
        case = CaseQueryService.get_case_detail(case_id)
        with atomic_write("worklog on case %s", case_id):
            worklog = CaseWorklog.objects.create(
                case=case,
                author=author,
                duration_minutes=duration_minutes,
                description=(description or "").strip(),
            )
        logger.info(
            "Worklog %s (%d min) added to case %s by %s",
            worklog.pk, duration_minutes, case_id, author,
        )
        return worklog


# ═══════════════════════════════════════════════════════════════════
#  Overdue Case Service
# ═══════════════════════════════════════════════════════════════════


class OverdueCaseService:
    """
    Reminds handlers about cases that are still open long after they
    started.

    A handler is reminded at most once per case; running the reminder
    again is a no-op for cases already reported.
    """

    @staticmethod
    def threshold_hours() -> int:
        return int(getattr(settings, "CASES_OVERDUE_THRESHOLD_HOURS", OVERDUE_THRESHOLD_HOURS))

    @staticmethod
    def find_overdue(now=None, threshold_hours: int | None = None) -> QuerySet:
        """Open cases whose start is older than the threshold and whose handler can log in."""
        now = now or timezone.now()
        hours = threshold_hours if threshold_hours is not None else OverdueCaseService.threshold_hours()
        return (
            Case.objects
            .filter(
                status__in=transitions.OPEN_STATUSES,
                start_date__lt=now - timedelta(hours=hours),
                handler__user__isnull=False,
                handler__user__is_active=True,
            )
            .select_related("handler__user")
            .order_by("start_date")
        )

    @staticmethod
    def notify_overdue_cases(now=None, threshold_hours: int | None = None) -> int:
        """
        Send one reminder per overdue case to its handler.

        Returns
        -------
        int
            Number of reminders created in this run.
        """
        hours = threshold_hours if threshold_hours is not None else OverdueCaseService.threshold_hours()
        sent = 0
        for case in OverdueCaseService.find_overdue(now=now, threshold_hours=hours):
            recipient = case.handler.user
            if NotificationService.has_been_notified(
                recipient=recipient,
                event_type=EVENT_CASE_OVERDUE,
                related_object=case,
            ):
                continue
            NotificationService.create(
                recipients=recipient,
                event_type=EVENT_CASE_OVERDUE,
                payload={"title": case.title, "hours": hours},
                related_object=case,
            )
            sent += 1

        logger.info("Overdue reminder run: %d reminder(s) sent (threshold %sh)", sent, hours)
        return sent
