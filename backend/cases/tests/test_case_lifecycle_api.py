"""
Integration tests for the case lifecycle through the HTTP API.

Covers create, partial update (absent vs. null, date rules, implicit
completion, assessment stamping, optimistic locking), the
``set-in-progress`` / ``close`` / ``evaluation`` actions, and listing.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from cases.models import Case, CaseStatus
from personnel.models import Employee, Partner

User = get_user_model()

START = datetime(2025, 1, 10, 9, 0, tzinfo=dt_timezone.utc)

USER_BLOCK = {
    "user_difficulty_level": 3,
    "user_estimated_time": 2,
    "user_impact_level": 4,
    "user_urgency_level": 5,
    "user_form_score": 1,
}
ADMIN_BLOCK = {
    "admin_difficulty_level": 4,
    "admin_estimated_time": 3,
    "admin_impact_level": 4,
    "admin_urgency_level": 4,
}


class CaseApiTestMixin:
    """Shared fixtures: one regular user, one administrator, staff records."""

    password = "CaseFlow!Pass42"

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            username="case_user", password=cls.password, email="case_user@example.com",
        )
        cls.admin = User.objects.create_user(
            username="case_admin", password=cls.password, email="case_admin@example.com",
            is_staff=True,
        )
        cls.requester = Employee.objects.create(full_name="Ana Requester", department="Sales")
        cls.handler = Employee.objects.create(full_name="Hugo Handler", department="IT")
        cls.other_handler = Employee.objects.create(full_name="Olga Other", department="IT")
        cls.customer = Partner.objects.create(short_name="Acme", full_company_name="Acme Corp.")

    def setUp(self):
        self.client = APIClient()
        self.list_url = reverse("case-list")

    def login_as(self, user) -> str:
        """Authenticate through POST /api/token/ and set the Bearer token."""
        resp = self.client.post(
            reverse("token_obtain_pair"),
            {"username": user.username, "password": self.password},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=f"Login failed: {resp.data}")
        token = resp.data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        return token

    def detail_url(self, case_id: int, action: str | None = None) -> str:
        if action is None:
            return reverse("case-detail", kwargs={"pk": case_id})
        return reverse(f"case-{action}", kwargs={"pk": case_id})

    def make_case(self, **overrides) -> Case:
        fields = {
            "kind": "incident",
            "title": "Printer on fire",
            "description": "The second-floor printer is smoking.",
            "requester": self.requester,
            "handler": self.handler,
            "start_date": START,
        }
        fields.update(overrides)
        return Case.objects.create(**fields)

    def create_payload(self, **overrides) -> dict:
        payload = {
            "kind": "incident",
            "title": "VPN drops every hour",
            "description": "Remote staff lose the VPN tunnel hourly.",
            "requester_id": self.requester.pk,
            "handler_id": self.handler.pk,
            "start_date": START.isoformat(),
        }
        payload.update(overrides)
        return payload


# ════════════════════════════════════════════════════════════════════
#  Create
# ════════════════════════════════════════════════════════════════════

class TestCaseCreate(CaseApiTestMixin, TestCase):

    def test_create_requires_authentication(self):
        resp = self.client.post(self.list_url, self.create_payload(), format="json")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_starts_received_and_unassessed(self):
        self.login_as(self.user)
        resp = self.client.post(self.list_url, self.create_payload(), format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.RECEIVED)
        self.assertEqual(resp.data["version"], 1)
        self.assertEqual(resp.data["requester"], {"id": self.requester.pk, "name": "Ana Requester"})
        self.assertEqual(resp.data["evaluation"]["grand_total"], "0.00")
        self.assertFalse(resp.data["evaluation"]["is_fully_assessed"])

        case = Case.objects.get(pk=resp.data["id"])
        self.assertEqual(case.created_by_id, self.user.pk)
        self.assertIsNone(case.end_date)
        self.assertIsNone(case.user_assessed_at)

    def test_create_with_user_scores_stamps_user_assessment(self):
        self.login_as(self.user)
        resp = self.client.post(self.list_url, self.create_payload(**USER_BLOCK), format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(resp.data["evaluation"]["user_total"], 15)
        self.assertEqual(resp.data["evaluation"]["grand_total"], "6.00")
        self.assertIsNotNone(resp.data["user_assessed_at"])
        self.assertIsNone(resp.data["admin_assessed_at"])

    def test_create_in_progress_derives_timestamp(self):
        self.login_as(self.user)
        resp = self.client.post(
            self.list_url, self.create_payload(status=CaseStatus.IN_PROGRESS), format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.IN_PROGRESS)
        self.assertIsNotNone(resp.data["in_progress_at"])

    def test_create_rejects_end_date(self):
        self.login_as(self.user)
        resp = self.client.post(
            self.list_url,
            self.create_payload(end_date=(START + timedelta(days=1)).isoformat()),
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "validation_error")
        self.assertFalse(Case.objects.exists())

    def test_create_rejects_terminal_status(self):
        self.login_as(self.user)
        resp = self.client.post(
            self.list_url, self.create_payload(status=CaseStatus.CANCELLED), format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "validation_error")

    def test_create_missing_required_field_is_a_400(self):
        self.login_as(self.user)
        payload = self.create_payload()
        del payload["title"]
        resp = self.client.post(self.list_url, payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("title", resp.data)

    def test_unknown_handler_is_a_reference_error(self):
        self.login_as(self.user)
        resp = self.client.post(self.list_url, self.create_payload(handler_id=999999), format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["code"], "reference_not_found")
        self.assertEqual(resp.data["detail"], "The handler with id 999999 was not found.")

    def test_delivery_requires_customer(self):
        self.login_as(self.user)
        resp = self.client.post(self.list_url, self.create_payload(kind="delivery"), format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "validation_error")

        resp = self.client.post(
            self.list_url,
            self.create_payload(
                kind="delivery",
                counterparty_id=self.customer.pk,
                details={"products": ["Router", "Switch"]},
            ),
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(resp.data["counterparty"]["name"], "Acme")
        self.assertEqual(resp.data["details"], {"products": ["Router", "Switch"]})

    def test_internal_case_has_no_counterparty(self):
        self.login_as(self.user)
        resp = self.client.post(
            self.list_url,
            self.create_payload(kind="internal", counterparty_id=self.customer.pk),
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_detail_keys_are_rejected(self):
        self.login_as(self.user)
        resp = self.client.post(
            self.list_url, self.create_payload(details={"shoe_size": 44}), format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("shoe_size", resp.data["detail"])

    def test_out_of_range_sub_score_is_rejected(self):
        self.login_as(self.user)
        resp = self.client.post(
            self.list_url, self.create_payload(user_form_score=3), format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "validation_error")


# ════════════════════════════════════════════════════════════════════
#  Partial update
# ════════════════════════════════════════════════════════════════════

class TestCaseUpdate(CaseApiTestMixin, TestCase):

    def test_user_block_then_admin_block(self):
        case = self.make_case()
        self.login_as(self.user)

        resp = self.client.patch(self.detail_url(case.pk), USER_BLOCK, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["evaluation"]["user_total"], 15)
        self.assertEqual(resp.data["evaluation"]["admin_total"], 0)
        self.assertEqual(resp.data["evaluation"]["grand_total"], "6.00")
        self.assertIsNotNone(resp.data["user_assessed_at"])
        self.assertIsNone(resp.data["admin_assessed_at"])
        self.assertEqual(resp.data["version"], 2)

        self.login_as(self.admin)
        resp = self.client.patch(self.detail_url(case.pk), ADMIN_BLOCK, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["evaluation"]["admin_total"], 15)
        self.assertEqual(resp.data["evaluation"]["grand_total"], "15.00")
        self.assertTrue(resp.data["evaluation"]["is_fully_assessed"])
        self.assertIsNotNone(resp.data["admin_assessed_at"])

    def test_admin_block_requires_staff(self):
        case = self.make_case()
        self.login_as(self.user)

        resp = self.client.patch(self.detail_url(case.pk), ADMIN_BLOCK, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(resp.data["code"], "permission_denied")

        case.refresh_from_db()
        self.assertIsNone(case.admin_difficulty_level)
        self.assertEqual(case.version, 1)

    def test_end_before_start_leaves_case_unchanged(self):
        case = self.make_case(notes="original")
        before = Case.objects.get(pk=case.pk)
        self.login_as(self.user)

        resp = self.client.patch(
            self.detail_url(case.pk),
            {"end_date": (START - timedelta(days=1)).isoformat(), "notes": "changed"},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "end_before_start")
        self.assertEqual(resp.data["detail"], "The end date must be later than the start date.")

        case.refresh_from_db()
        self.assertEqual(case.notes, "original")
        self.assertEqual(case.status, CaseStatus.RECEIVED)
        self.assertIsNone(case.end_date)
        self.assertEqual(case.updated_at, before.updated_at)
        self.assertEqual(case.version, before.version)

    def test_end_before_in_progress_is_rejected(self):
        case = self.make_case(
            status=CaseStatus.IN_PROGRESS, in_progress_at=START + timedelta(days=2),
        )
        self.login_as(self.user)

        resp = self.client.patch(
            self.detail_url(case.pk),
            {"end_date": (START + timedelta(days=1)).isoformat()},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "end_before_in_progress")

    def test_end_date_completes_open_case(self):
        case = self.make_case()
        self.login_as(self.user)

        resp = self.client.patch(
            self.detail_url(case.pk),
            {"end_date": (START + timedelta(days=1)).isoformat()},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.COMPLETED)

    def test_explicit_cancel_keeps_cancelled_with_end_date(self):
        case = self.make_case(status=CaseStatus.IN_PROGRESS, in_progress_at=START)
        self.login_as(self.user)

        resp = self.client.patch(
            self.detail_url(case.pk),
            {
                "status": CaseStatus.CANCELLED,
                "end_date": (START + timedelta(days=1)).isoformat(),
            },
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.CANCELLED)
        self.assertIsNotNone(resp.data["end_date"])

    def test_absent_keys_untouched_and_null_clears(self):
        case = self.make_case(
            notes="call back tomorrow",
            crm_reference_code="CRM-7",
            counterparty=self.customer,
            user_impact_level=2,
        )
        self.login_as(self.user)

        resp = self.client.patch(
            self.detail_url(case.pk),
            {"notes": None, "counterparty_id": None, "user_impact_level": None},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)

        case.refresh_from_db()
        self.assertEqual(case.notes, "")
        self.assertIsNone(case.counterparty)
        self.assertIsNone(case.user_impact_level)
        self.assertIsNotNone(case.user_assessed_at)
        self.assertEqual(case.crm_reference_code, "CRM-7")
        self.assertEqual(case.title, "Printer on fire")

    def test_resending_stored_scores_keeps_assessment_stamps(self):
        stamped = START + timedelta(days=1)
        case = self.make_case(user_impact_level=2, user_assessed_at=stamped)
        self.login_as(self.admin)

        resp = self.client.patch(
            self.detail_url(case.pk),
            {"user_impact_level": 2, "admin_difficulty_level": None},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)

        case.refresh_from_db()
        self.assertEqual(case.user_assessed_at, stamped)
        self.assertIsNone(case.admin_assessed_at)
        self.assertEqual(case.version, 2)

    def test_handler_can_be_reassigned(self):
        case = self.make_case()
        self.login_as(self.user)

        resp = self.client.patch(
            self.detail_url(case.pk), {"handler_id": self.other_handler.pk}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["handler"]["name"], "Olga Other")

    def test_immutable_fields_are_rejected(self):
        case = self.make_case()
        self.login_as(self.user)

        resp = self.client.patch(self.detail_url(case.pk), {"kind": "warranty"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("kind", resp.data)

    def test_stale_version_is_a_conflict(self):
        case = self.make_case()
        self.login_as(self.user)

        first = self.client.patch(
            self.detail_url(case.pk), {"title": "First", "expected_version": 1}, format="json",
        )
        self.assertEqual(first.status_code, status.HTTP_200_OK, msg=first.data)

        second = self.client.patch(
            self.detail_url(case.pk), {"title": "Second", "expected_version": 1}, format="json",
        )
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(second.data["code"], "stale_version")

        case.refresh_from_db()
        self.assertEqual(case.title, "First")
        self.assertEqual(case.version, 2)

    def test_loose_transitions_by_default(self):
        case = self.make_case(status=CaseStatus.COMPLETED, end_date=START + timedelta(days=1))
        self.login_as(self.user)

        resp = self.client.patch(
            self.detail_url(case.pk), {"status": CaseStatus.RECEIVED}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.RECEIVED)

    @override_settings(CASES_STRICT_STATUS_TRANSITIONS=True)
    def test_strict_transitions_reject_reopening(self):
        case = self.make_case(status=CaseStatus.COMPLETED, end_date=START + timedelta(days=1))
        self.login_as(self.user)

        resp = self.client.patch(
            self.detail_url(case.pk), {"status": CaseStatus.RECEIVED}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "invalid_transition")

    def test_unknown_case_is_a_404(self):
        self.login_as(self.user)
        resp = self.client.patch(self.detail_url(424242), {"title": "Nope"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["code"], "not_found")


# ════════════════════════════════════════════════════════════════════
#  Lifecycle actions
# ════════════════════════════════════════════════════════════════════

class TestCaseActions(CaseApiTestMixin, TestCase):

    def test_set_in_progress_then_close(self):
        case = self.make_case()
        self.login_as(self.user)

        resp = self.client.post(self.detail_url(case.pk, "set-in-progress"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.IN_PROGRESS)
        self.assertIsNotNone(resp.data["in_progress_at"])

        resp = self.client.post(self.detail_url(case.pk, "close"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.COMPLETED)
        self.assertIsNotNone(resp.data["end_date"])
        self.assertEqual(resp.data["version"], 3)

    def test_repeated_set_in_progress_keeps_start_time(self):
        case = self.make_case()
        self.login_as(self.user)

        first = self.client.post(self.detail_url(case.pk, "set-in-progress"))
        second = self.client.post(self.detail_url(case.pk, "set-in-progress"))

        self.assertEqual(second.status_code, status.HTTP_200_OK, msg=second.data)
        self.assertEqual(second.data["in_progress_at"], first.data["in_progress_at"])
        self.assertEqual(second.data["status"], CaseStatus.IN_PROGRESS)

    def test_set_in_progress_on_closed_case_is_a_conflict(self):
        case = self.make_case(status=CaseStatus.CANCELLED, end_date=START + timedelta(hours=1))
        self.login_as(self.user)

        resp = self.client.post(self.detail_url(case.pk, "set-in-progress"))
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "invalid_transition")

    def test_close_rejects_future_start(self):
        case = self.make_case(start_date=datetime(2999, 1, 1, tzinfo=dt_timezone.utc))
        self.login_as(self.user)

        resp = self.client.post(self.detail_url(case.pk, "close"))
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "end_before_start")

    def test_admin_evaluation(self):
        case = self.make_case(**USER_BLOCK)
        self.login_as(self.admin)

        resp = self.client.put(
            self.detail_url(case.pk, "evaluation"),
            {**ADMIN_BLOCK, "admin_assessment_notes": "Fair estimate."},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["evaluation"]["grand_total"], "15.00")
        self.assertTrue(resp.data["evaluation"]["is_fully_assessed"])
        self.assertEqual(resp.data["admin_assessment_notes"], "Fair estimate.")

    def test_admin_evaluation_requires_every_sub_score(self):
        case = self.make_case()
        self.login_as(self.admin)

        partial = dict(ADMIN_BLOCK)
        del partial["admin_urgency_level"]
        resp = self.client.put(self.detail_url(case.pk, "evaluation"), partial, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_evaluation_is_staff_only(self):
        case = self.make_case()
        self.login_as(self.user)

        resp = self.client.put(self.detail_url(case.pk, "evaluation"), ADMIN_BLOCK, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)


# ════════════════════════════════════════════════════════════════════
#  Read / list
# ════════════════════════════════════════════════════════════════════

class TestCaseQuery(CaseApiTestMixin, TestCase):

    def test_retrieve_recomputes_evaluation(self):
        case = self.make_case(**USER_BLOCK)
        Case.objects.filter(pk=case.pk).update(
            **ADMIN_BLOCK,
        )
        self.login_as(self.user)

        resp = self.client.get(self.detail_url(case.pk))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["evaluation"]["grand_total"], "15.00")

    def test_list_filters(self):
        self.make_case(kind="incident", title="Mail server down")
        self.make_case(kind="maintenance", title="Replace UPS battery")
        self.make_case(kind="maintenance", title="Clean server room", **ADMIN_BLOCK)
        self.login_as(self.user)

        resp = self.client.get(self.list_url, {"kind": "maintenance"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["count"], 2)

        resp = self.client.get(self.list_url, {"needs_evaluation": "true"})
        self.assertEqual(resp.data["count"], 2)

        resp = self.client.get(self.list_url, {"needs_evaluation": "false"})
        self.assertEqual(resp.data["count"], 1)
        self.assertEqual(resp.data["results"][0]["title"], "Clean server room")

        resp = self.client.get(self.list_url, {"search": "server"})
        self.assertEqual(resp.data["count"], 2)

        resp = self.client.get(self.list_url, {"search": "hugo"})
        self.assertEqual(resp.data["count"], 3)

    def test_list_rejects_bad_filter(self):
        self.login_as(self.user)
        resp = self.client.get(self.list_url, {"status": "ARCHIVED"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
