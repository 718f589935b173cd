"""
Fixtures shared by the pytest-style tests under ``backend/``.

Provides:
  - ``api_client``: a bare DRF ``APIClient``.
  - ``create_user``: user factory; pass ``is_staff=True`` for an administrator.
  - ``staff_user`` fixture for an administrator account.
  - ``create_employee`` / ``create_partner`` factories for personnel rows.
  - ``auth_header``: a JWT ``Authorization`` header for a fresh user.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def create_user(db):
    """
    Build users with unique usernames and a known password.

    Usage::

        def test_something(create_user):
            user = create_user(username="alice")
            admin = create_user(username="root", is_staff=True)
    """
    from django.contrib.auth import get_user_model

    User = get_user_model()
    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        is_staff: bool = False,
        is_active: bool = True,
        **kwargs,
    ):
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        if email is None:
            email = f"{username}@test.local"

        return User.objects.create_user(
            username=username,
            password=password,
            email=email,
            is_staff=is_staff,
            is_active=is_active,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def staff_user(create_user):
    """An active administrator."""
    return create_user(username="admin", is_staff=True)


@pytest.fixture()
def create_employee(db):
    """Factory for ``personnel.Employee`` rows."""
    from personnel.models import Employee

    _counter = 0

    def _factory(*, full_name: str | None = None, user=None, **kwargs) -> Employee:
        nonlocal _counter
        _counter += 1
        return Employee.objects.create(
            full_name=full_name or f"Employee {_counter}",
            position=kwargs.pop("position", "Technician"),
            department=kwargs.pop("department", "IT"),
            company_email=kwargs.pop("company_email", f"employee{_counter}@test.local"),
            user=user,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def create_partner(db):
    """Factory for ``personnel.Partner`` rows."""
    from personnel.models import Partner

    _counter = 0

    def _factory(*, short_name: str | None = None, **kwargs) -> Partner:
        nonlocal _counter
        _counter += 1
        short_name = short_name or f"Partner {_counter}"
        return Partner.objects.create(
            short_name=short_name,
            full_company_name=kwargs.pop("full_company_name", f"{short_name} Ltd."),
            **kwargs,
        )

    return _factory


@pytest.fixture()
def auth_header(create_user):
    """
    Create a user and hand back a bearer header signed by simplejwt.

    Usage::

        def test_protected(auth_header, api_client):
            header = auth_header(username="alice")
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
            assert api_client.get("/api/cases/").status_code == 200
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(*, username: str | None = None, **user_kwargs) -> dict[str, str]:
        user = create_user(username=username, **user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make
