"""
Personnel app services.

``PersonnelDirectory`` is the only way the cases app looks up people and
partners.  Lookups raise ``ReferenceNotFound`` for ids that do not
resolve, which the API layer renders as 404.
"""

from __future__ import annotations

import logging
from typing import Any

from core.domain.exceptions import ReferenceNotFound

from .models import Employee, Partner

logger = logging.getLogger(__name__)


class PersonnelDirectory:
    """Resolve requester/handler/counterparty references by primary key."""

    @staticmethod
    def resolve_employee(employee_id: Any, *, field: str = "employee") -> Employee:
        """
        Return the ``Employee`` with ``employee_id``.

        Raises:
            ReferenceNotFound: If no employee has that id.
        """
        employee = _get_or_none(Employee, employee_id)
        if employee is None:
            logger.warning("Unresolved %s reference: %s", field, employee_id)
            raise ReferenceNotFound(field=field, ref=employee_id)
        return employee

    @staticmethod
    def resolve_partner(partner_id: Any, *, field: str = "counterparty") -> Partner:
        """
        Return the ``Partner`` with ``partner_id``.

        Raises:
            ReferenceNotFound: If no partner has that id.
        """
        partner = _get_or_none(Partner, partner_id)
        if partner is None:
            logger.warning("Unresolved %s reference: %s", field, partner_id)
            raise ReferenceNotFound(field=field, ref=partner_id)
        return partner


def _get_or_none(model_class, pk):
    if pk is None:
        return None
    try:
        return model_class.objects.get(pk=pk)
    except (model_class.DoesNotExist, ValueError, TypeError):
        return None
