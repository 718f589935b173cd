"""
cases.registry — The seven case kinds and what sets them apart.

Every kind shares one ``Case`` table and one lifecycle.  What differs
per kind is captured here and nowhere else:

* the counterparty role (customer, supplier or none) and whether a
  counterparty is required;
* the keys allowed in the kind-specific ``details`` JSON record;
* how the kind is labelled in the chat announcement.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from core.domain.exceptions import ValidationError


class CounterpartyRole:
    NONE = "none"
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


@dataclass(frozen=True)
class CaseKindSpec:
    kind: str
    label: str
    counterparty_role: str
    counterparty_required: bool
    detail_keys: frozenset[str]
    emoji: str
    announce_requester: bool = True

    @property
    def chat_title(self) -> str:
        return f"New {self.label.upper()} case created"

    def as_dict(self) -> dict[str, Any]:
        return {
            "value": self.kind,
            "label": self.label,
            "counterparty_role": self.counterparty_role,
            "counterparty_required": self.counterparty_required,
            "detail_keys": sorted(self.detail_keys),
        }


CASE_KIND_REGISTRY: dict[str, CaseKindSpec] = {
    spec.kind: spec
    for spec in (
        CaseKindSpec(
            kind="internal",
            label="Internal",
            counterparty_role=CounterpartyRole.NONE,
            counterparty_required=False,
            detail_keys=frozenset({"case_type", "form"}),
            emoji="🏢",
        ),
        CaseKindSpec(
            kind="delivery",
            label="Delivery",
            counterparty_role=CounterpartyRole.CUSTOMER,
            counterparty_required=True,
            detail_keys=frozenset({"form", "products"}),
            emoji="🚚",
        ),
        CaseKindSpec(
            kind="receiving",
            label="Receiving",
            counterparty_role=CounterpartyRole.SUPPLIER,
            counterparty_required=True,
            detail_keys=frozenset({"form", "products"}),
            emoji="📦",
            announce_requester=False,
        ),
        CaseKindSpec(
            kind="incident",
            label="Incident",
            counterparty_role=CounterpartyRole.CUSTOMER,
            counterparty_required=False,
            detail_keys=frozenset({"incident_type", "priority"}),
            emoji="⚠️",
        ),
        CaseKindSpec(
            kind="maintenance",
            label="Maintenance",
            counterparty_role=CounterpartyRole.CUSTOMER,
            counterparty_required=False,
            detail_keys=frozenset({"maintenance_type", "equipment"}),
            emoji="🔧",
        ),
        CaseKindSpec(
            kind="warranty",
            label="Warranty",
            counterparty_role=CounterpartyRole.CUSTOMER,
            counterparty_required=False,
            detail_keys=frozenset({"warranty_type"}),
            emoji="🛡️",
        ),
        CaseKindSpec(
            kind="deployment",
            label="Deployment",
            counterparty_role=CounterpartyRole.CUSTOMER,
            counterparty_required=False,
            detail_keys=frozenset({"deployment_type", "customer_name"}),
            emoji="🚀",
        ),
    )
}


def get_kind_spec(kind: str) -> CaseKindSpec:
    """
    Return the ``CaseKindSpec`` for ``kind``.

    Raises:
        ValidationError: ``kind`` is not registered.
    """
    try:
        return CASE_KIND_REGISTRY[kind]
    except KeyError:
        raise ValidationError(f"'{kind}' is not a valid case kind.", field="kind")


def validate_details(kind: str, details: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Check ``details`` against the keys allowed for ``kind``.

    Returns a plain dict (empty for ``None``).

    Raises:
        ValidationError: ``details`` is not a mapping or has unknown keys.
    """
    if details is None:
        return {}
    if not isinstance(details, Mapping):
        raise ValidationError("'details' must be an object.", field="details")
    spec = get_kind_spec(kind)
    unknown = sorted(set(details) - spec.detail_keys)
    if unknown:
        raise ValidationError(
            f"Unknown details for a {spec.label.lower()} case: {', '.join(unknown)}.",
            field="details",
        )
    return dict(details)
