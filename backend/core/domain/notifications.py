"""
core.domain.notifications — Writes ``Notification`` rows for case events.

Other apps go through ``NotificationService`` and never build
``Notification`` objects themselves.

Notes
-----
* Case fan-out calls in from ``cases.tasks`` once the creating
  transaction has committed; an error raised here cannot undo the case.
* ``recipients`` takes one user or any iterable of users.
* ``related_object`` is stored through the generic foreign key on
  ``Notification``. The overdue reminder looks it up to avoid sending
  the same reminder twice.

Usage::

    from core.domain.notifications import NotificationService

    NotificationService.notify_case_created(
        kind="incident",
        case_id=case.pk,
        title=case.title,
        requester_name=case.requester.full_name,
        admin_user_id=admin.pk,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.apps import apps
from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from django.db import models

if TYPE_CHECKING:
    from django.contrib.auth.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# ── Event-type → human-readable templates ───────────────────────────
# Templates are interpolated with ``str.format(**payload)``.
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    # event_type: (title_template, message_template)
    "case_created": (
        "New {kind_label} case",
        '{requester_name} created the case "{title}".',
    ),
    "case_overdue": (
        "Case still open",
        'The case "{title}" has been open for more than {hours} hours.',
    ),
}

EVENT_CASE_CREATED = "case_created"
EVENT_CASE_OVERDUE = "case_overdue"


class NotificationService:
    """
    Entry point for every notification the system sends.
    """

    @classmethod
    def create(
        cls,
        *,
        recipients: User | Iterable[User],
        event_type: str,
        payload: dict[str, Any] | None = None,
        related_object: models.Model | None = None,
    ) -> list[Notification]:
        """
        Create one ``Notification`` per recipient.

        Args:
            recipients:     A single ``User`` or iterable of ``User``
                            instances.
            event_type:     Key into ``_EVENT_TEMPLATES``.  If unknown
                            the raw event_type is used as title.
            payload:        Values interpolated into the templates.
            related_object: Optional model instance linked via
                            ``GenericForeignKey``.

        Returns:
            List of created ``Notification`` instances.
        """
        from core.models import Notification

        if isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = list(recipients)

        if not recipients:
            logger.warning(
                "NotificationService.create called with empty recipients "
                "for event_type=%s",
                event_type,
            )
            return []

        title, message = cls.render(event_type, payload or {})

        content_type = None
        object_id = None
        if related_object is not None:
            content_type = ContentType.objects.get_for_model(related_object)
            object_id = related_object.pk

        notifications = [
            Notification.objects.create(
                recipient=recipient,
                event_type=event_type,
                title=title,
                message=message,
                content_type=content_type,
                object_id=object_id,
            )
            for recipient in recipients
        ]

        logger.info(
            "Created %d notification(s) [%s]",
            len(notifications),
            event_type,
        )
        return notifications

    @staticmethod
    def render(event_type: str, payload: dict[str, Any]) -> tuple[str, str]:
        """Return the ``(title, message)`` pair for ``event_type``."""
        templates = _EVENT_TEMPLATES.get(event_type)
        if templates is None:
            return event_type.replace("_", " ").title(), f"Event: {event_type}"
        title_tpl, message_tpl = templates
        return title_tpl.format(**payload), message_tpl.format(**payload)

    # ── Case events ─────────────────────────────────────────────────

    @classmethod
    def notify_case_created(
        cls,
        *,
        kind: str,
        case_id: int,
        title: str,
        requester_name: str,
        admin_user_id: int,
    ) -> Notification | None:
        """
        Tell one administrator that a case was created.

        Called once per active administrator by the post-commit
        fan-out task.  Returns ``None`` when the administrator account
        has disappeared in the meantime.
        """
        from cases.registry import get_kind_spec

        User = get_user_model()
        admin = User.objects.filter(pk=admin_user_id, is_active=True).first()
        if admin is None:
            logger.warning(
                "Skipping case_created notification: admin user %s is gone",
                admin_user_id,
            )
            return None

        Case = apps.get_model("cases", "Case")
        case = Case.objects.filter(pk=case_id).first()

        created = cls.create(
            recipients=admin,
            event_type=EVENT_CASE_CREATED,
            payload={
                "kind_label": get_kind_spec(kind).label.lower(),
                "title": title,
                "requester_name": requester_name,
            },
            related_object=case,
        )
        return created[0]

    @classmethod
    def has_been_notified(
        cls, *, recipient: User, event_type: str, related_object: models.Model,
    ) -> bool:
        """Return ``True`` if ``recipient`` already got ``event_type`` for the object."""
        from core.models import Notification

        return Notification.objects.filter(
            recipient=recipient,
            event_type=event_type,
            content_type=ContentType.objects.get_for_model(related_object),
            object_id=related_object.pk,
        ).exists()
