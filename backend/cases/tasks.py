"""
Cases background tasks.

``dispatch_case_created`` is enqueued by ``CaseLifecycleService.create_case``
once the creating transaction has committed.  It fans out to:

* one in-app notification per active administrator;
* one chat webhook announcement.

Each delivery is attempted independently and every failure is logged and
absorbed, so a broken chat bot never blocks the admin notifications and
vice versa.
"""

from __future__ import annotations

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction

from backend.celery import app
from core.domain.chat_webhook import CaseSummary, ChatWebhookClient
from core.domain.notifications import NotificationService

from .models import Case
from .services import OverdueCaseService

logger = logging.getLogger(__name__)


def active_admin_ids() -> list[int]:
    """PKs of the users who receive case-created notifications."""
    User = get_user_model()
    return list(
        User.objects
        .filter(is_active=True, is_staff=True)
        .order_by("pk")
        .values_list("pk", flat=True)
    )


@app.task(bind=True, name="cases.tasks.dispatch_case_created")
def dispatch_case_created(self, case_id: int) -> dict[str, Any]:
    """Notify administrators and the chat webhook about a new case."""
    case = (
        Case.objects
        .select_related("requester", "handler")
        .filter(pk=case_id)
        .first()
    )
    if case is None:
        logger.warning("Case %s vanished before its fan-out ran", case_id)
        return {"case_id": case_id, "notified": 0, "failed": 0, "chat_sent": False}

    notified = failed = 0
    for admin_id in active_admin_ids():
        try:
            with transaction.atomic():
                NotificationService.notify_case_created(
                    kind=case.kind,
                    case_id=case.pk,
                    title=case.title,
                    requester_name=case.requester.full_name,
                    admin_user_id=admin_id,
                )
            notified += 1
        except Exception:
            failed += 1
            logger.exception(
                "case_created notification for admin %s failed (case %s)",
                admin_id, case.pk,
            )

    chat_sent = False
    try:
        chat_sent = ChatWebhookClient.from_settings().send_case_created_message(
            CaseSummary(
                case_id=case.pk,
                kind=case.kind,
                title=case.title,
                description=case.description,
                requester_name=case.requester.full_name,
                handler_name=case.handler.full_name,
                created_at=case.created_at,
            )
        )
    except Exception:
        logger.exception("Chat announcement for case %s failed", case.pk)

    logger.info(
        "Fan-out for case %s: %d notified, %d failed, chat=%s",
        case.pk, notified, failed, chat_sent,
    )
    return {"case_id": case.pk, "notified": notified, "failed": failed, "chat_sent": chat_sent}


@app.task(bind=True, name="cases.tasks.notify_overdue_cases")
def notify_overdue_cases(self, threshold_hours: int | None = None) -> int:
    """Periodic reminder for cases left open past the threshold."""
    return OverdueCaseService.notify_overdue_cases(threshold_hours=threshold_hours)
