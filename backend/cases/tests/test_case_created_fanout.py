"""
Tests for the post-commit fan-out that follows a successful case create.

* The fan-out is scheduled with ``transaction.on_commit`` and therefore
  only runs once the creating transaction commits.
* Every active administrator receives an in-app notification.
* Chat webhook and broker failures are logged and absorbed: the create
  still answers ``201``.

Celery runs eagerly under ``backend.settings_test``, so
``captureOnCommitCallbacks(execute=True)`` drives the whole pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from unittest import mock

import httpx
from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from cases.models import Case
from cases.tasks import dispatch_case_created
from core.domain.chat_webhook import ChatWebhookClient
from core.models import Notification
from personnel.models import Employee

User = get_user_model()


class TestCaseCreatedFanout(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            username="fanout_user", password="Fanout!Pass42", email="fanout_user@example.com",
        )
        cls.admin_a = User.objects.create_user(
            username="fanout_admin_a", password="Fanout!Pass42", is_staff=True,
        )
        cls.admin_b = User.objects.create_user(
            username="fanout_admin_b", password="Fanout!Pass42", is_staff=True,
        )
        cls.retired_admin = User.objects.create_user(
            username="fanout_admin_retired", password="Fanout!Pass42", is_staff=True, is_active=False,
        )
        cls.requester = Employee.objects.create(full_name="Nora Requester")
        cls.handler = Employee.objects.create(full_name="Hal Handler")

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)
        self.url = reverse("case-list")

    def payload(self, **overrides) -> dict:
        payload = {
            "kind": "incident",
            "title": "Badge reader offline",
            "description": "Front door badge reader is not responding.",
            "requester_id": self.requester.pk,
            "handler_id": self.handler.pk,
            "start_date": datetime(2025, 1, 10, 9, 0, tzinfo=dt_timezone.utc).isoformat(),
        }
        payload.update(overrides)
        return payload

    def test_admins_are_notified_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            resp = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(len(callbacks), 1)

        case = Case.objects.get(pk=resp.data["id"])
        notifications = Notification.objects.filter(event_type="case_created")
        self.assertEqual(
            set(notifications.values_list("recipient__username", flat=True)),
            {"fanout_admin_a", "fanout_admin_b"},
        )
        sample = notifications.first()
        self.assertEqual(sample.title, "New incident case")
        self.assertEqual(sample.message, 'Nora Requester created the case "Badge reader offline".')
        self.assertEqual(sample.content_type, ContentType.objects.get_for_model(Case))
        self.assertEqual(sample.object_id, case.pk)
        self.assertFalse(Notification.objects.filter(recipient=self.user).exists())

    def test_nothing_is_scheduled_when_create_fails(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            resp = self.client.post(self.url, self.payload(handler_id=999999), format="json")

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(callbacks, [])
        self.assertFalse(Notification.objects.exists())

    def test_chat_failure_does_not_fail_the_create(self):
        failing_client = mock.Mock()
        failing_client.send_case_created_message.side_effect = httpx.ConnectError("chat is down")

        with mock.patch("cases.tasks.ChatWebhookClient.from_settings", return_value=failing_client):
            with self.captureOnCommitCallbacks(execute=True):
                resp = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        failing_client.send_case_created_message.assert_called_once()
        self.assertEqual(Notification.objects.filter(event_type="case_created").count(), 2)

    def test_broker_failure_does_not_fail_the_create(self):
        with mock.patch.object(dispatch_case_created, "delay", side_effect=RuntimeError("broker unreachable")):
            with self.captureOnCommitCallbacks(execute=True):
                resp = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertTrue(Case.objects.filter(pk=resp.data["id"]).exists())
        self.assertFalse(Notification.objects.exists())


class TestDispatchCaseCreatedTask(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin_a = User.objects.create_user(username="task_admin_a", password="x", is_staff=True)
        cls.admin_b = User.objects.create_user(username="task_admin_b", password="x", is_staff=True)
        requester = Employee.objects.create(full_name="Rosa Requester")
        handler = Employee.objects.create(full_name="Henk Handler")
        cls.case = Case.objects.create(
            kind="receiving",
            title="Pallet of monitors",
            description="24 monitors from the supplier.",
            requester=requester,
            handler=handler,
            start_date=datetime(2025, 1, 10, 9, 0, tzinfo=dt_timezone.utc),
        )

    def test_one_failing_admin_does_not_stop_the_others(self):
        with mock.patch(
            "cases.tasks.NotificationService.notify_case_created",
            side_effect=[RuntimeError("boom"), None],
        ) as notify:
            result = dispatch_case_created.apply(args=(self.case.pk,)).get()

        self.assertEqual(notify.call_count, 2)
        self.assertEqual(result["notified"], 1)
        self.assertEqual(result["failed"], 1)
        self.assertFalse(result["chat_sent"])

    @override_settings(CHAT_WEBHOOK={"BOT_TOKEN": "token", "CHAT_ID": "-100"})
    def test_configured_chat_is_announced(self):
        with mock.patch.object(ChatWebhookClient, "_post_message", return_value={"ok": True}) as post:
            result = dispatch_case_created.apply(args=(self.case.pk,)).get()

        self.assertTrue(result["chat_sent"])
        self.assertEqual(result["notified"], 2)
        text = post.call_args.args[0]
        self.assertIn("New RECEIVING case created", text)
        self.assertIn("Pallet of monitors", text)
        self.assertNotIn("Requester:", text)

    def test_vanished_case_is_a_no_op(self):
        result = dispatch_case_created.apply(args=(424242,)).get()
        self.assertEqual(result, {"case_id": 424242, "notified": 0, "failed": 0, "chat_sent": False})
