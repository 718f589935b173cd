"""
End-to-end checks through real JWT bearer tokens rather than
``force_authenticate``.
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone

import pytest
from django.urls import reverse

from cases.models import Case

START = datetime(2025, 3, 3, 8, 30, tzinfo=dt_timezone.utc).isoformat()


@pytest.fixture()
def receiving_payload(create_employee, create_partner):
    supplier = create_partner(short_name="Northwind")
    return {
        "kind": "receiving",
        "title": "Twelve docking stations",
        "description": "Delivery note attached to the box.",
        "requester_id": create_employee(full_name="Rae Requester").pk,
        "handler_id": create_employee(full_name="Hugo Handler").pk,
        "counterparty_id": supplier.pk,
        "start_date": START,
    }


@pytest.mark.django_db
class TestBearerAccess:

    def test_anonymous_requests_are_rejected(self, api_client):
        assert api_client.get(reverse("case-list")).status_code == 401
        assert api_client.get(reverse("core:dashboard-stats")).status_code == 401

    def test_bearer_token_creates_receiving_case(self, api_client, auth_header, receiving_payload):
        api_client.credentials(HTTP_AUTHORIZATION=auth_header(username="clerk")["Authorization"])

        resp = api_client.post(reverse("case-list"), receiving_payload, format="json")

        assert resp.status_code == 201, resp.data
        assert resp.data["counterparty"]["name"] == "Northwind"
        assert resp.data["status"] == "RECEIVED"
        assert resp.data["version"] == 1
        assert Case.objects.get(pk=resp.data["id"]).created_by.username == "clerk"

    def test_malformed_token_is_rejected(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")
        assert api_client.get(reverse("case-list")).status_code == 401


@pytest.mark.django_db
class TestStaffEvaluation:

    def test_staff_user_scores_a_case(self, api_client, staff_user, receiving_payload):
        api_client.force_authenticate(user=staff_user)
        created = api_client.post(reverse("case-list"), receiving_payload, format="json")
        assert created.status_code == 201, created.data

        resp = api_client.put(
            reverse("case-evaluation", kwargs={"pk": created.data["id"]}),
            {
                "admin_difficulty_level": 3,
                "admin_estimated_time": 3,
                "admin_impact_level": 3,
                "admin_urgency_level": 3,
            },
            format="json",
        )

        assert resp.status_code == 200, resp.data
        assert resp.data["evaluation"]["admin_total"] == 12
        assert resp.data["evaluation"]["grand_total"] == "7.20"
        assert resp.data["admin_assessed_at"] is not None
        assert resp.data["version"] == 2
