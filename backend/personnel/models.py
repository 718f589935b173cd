"""
Personnel app models.

Read-only directory records that cases point at: ``Employee`` for the
requester and handler of a case, ``Partner`` for its external
counterparty (customer or supplier).  Both are maintained through the
Django admin; the cases app only resolves them by id.
"""

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class Employee(TimeStampedModel):
    """
    A member of staff who can raise or handle cases.

    ``user`` links the employee to a login account.  It is optional:
    a handler without an account simply does not receive in-app
    reminders.
    """

    full_name = models.CharField(max_length=255, verbose_name="Full Name")
    position = models.CharField(max_length=255, blank=True, default="", verbose_name="Position")
    department = models.CharField(max_length=255, blank=True, default="", verbose_name="Department")
    company_email = models.EmailField(blank=True, default="", verbose_name="Company Email")
    is_active = models.BooleanField(default=True, verbose_name="Active")
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="employee",
        verbose_name="User Account",
    )

    class Meta:
        verbose_name = "Employee"
        verbose_name_plural = "Employees"
        ordering = ["full_name"]

    def __str__(self):
        return self.full_name


class Partner(TimeStampedModel):
    """An external company: a customer for most kinds, a supplier for receiving."""

    short_name = models.CharField(max_length=255, verbose_name="Short Name")
    full_company_name = models.CharField(max_length=255, blank=True, default="", verbose_name="Company Name")
    contact_person = models.CharField(max_length=255, blank=True, default="", verbose_name="Contact Person")
    contact_phone = models.CharField(max_length=64, blank=True, default="", verbose_name="Contact Phone")

    class Meta:
        verbose_name = "Partner"
        verbose_name_plural = "Partners"
        ordering = ["short_name"]

    def __str__(self):
        return self.short_name
