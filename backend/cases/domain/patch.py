"""
cases.domain.patch — Partial updates that keep "absent" and "null" apart.

A PATCH body can omit a key (leave the field alone) or send ``null``
(clear the field).  ``CasePatch`` stores only the keys that were sent;
``value()`` returns the ``UNSET`` sentinel for everything else, so a
``None`` coming back always means an explicit clear.

Example::

    patch = CasePatch({"end_date": None, "notes": "called back"})
    patch.value("end_date")      # None   -> clear it
    patch.value("status")        # UNSET  -> leave it alone
    patch.touches(USER_SCORE_FIELDS)   # False
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping

from core.domain.exceptions import ValidationError


class _Unset:
    """Marker type for "key not present in the patch"."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


USER_SCORE_FIELDS: tuple[str, ...] = (
    "user_difficulty_level",
    "user_estimated_time",
    "user_impact_level",
    "user_urgency_level",
    "user_form_score",
)

ADMIN_SCORE_FIELDS: tuple[str, ...] = (
    "admin_difficulty_level",
    "admin_estimated_time",
    "admin_impact_level",
    "admin_urgency_level",
)

#: Fields an update may touch.  ``kind`` and ``requester`` are fixed at
#: creation; the assessment timestamps are never client-settable.
MUTABLE_FIELDS: frozenset[str] = frozenset({
    "title",
    "description",
    "handler_id",
    "counterparty_id",
    "status",
    "start_date",
    "in_progress_at",
    "end_date",
    "notes",
    "crm_reference_code",
    "details",
    "admin_assessment_notes",
    *USER_SCORE_FIELDS,
    *ADMIN_SCORE_FIELDS,
})

#: Fields that may be changed but never cleared.
NON_NULLABLE_FIELDS: frozenset[str] = frozenset({
    "title",
    "description",
    "handler_id",
    "status",
    "start_date",
})


class CasePatch:
    """
    Immutable view over the keys a client actually sent.

    Parameters
    ----------
    values : Mapping[str, Any] | None
        Field name → new value.  ``None`` means "clear".
    expected_version : int | None
        Optimistic-lock token.  ``None`` keeps last-writer-wins.

    Raises
    ------
    ValidationError
        If a key is not an updatable case field, or a required field is
        being cleared.
    """

    __slots__ = ("_values", "expected_version")

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        *,
        expected_version: int | None = None,
    ) -> None:
        values = dict(values or {})
        for name, value in values.items():
            if name not in MUTABLE_FIELDS:
                raise ValidationError(
                    f"'{name}' cannot be changed on an existing case.",
                    field=name,
                )
            if value is None and name in NON_NULLABLE_FIELDS:
                raise ValidationError(
                    f"'{name}' cannot be cleared.",
                    field=name,
                )
            if isinstance(value, str) and name in NON_NULLABLE_FIELDS and not value.strip():
                raise ValidationError(f"'{name}' cannot be blank.", field=name)
        self._values = values
        self.expected_version = expected_version

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CasePatch:
        """Build a patch from validated request data, lifting out ``expected_version``."""
        data = dict(data)
        expected_version = data.pop("expected_version", None)
        return cls(data, expected_version=expected_version)

    def value(self, name: str, default: Any = UNSET) -> Any:
        return self._values.get(name, default)

    def is_set(self, name: str) -> bool:
        return name in self._values

    def touches(self, names: Iterable[str]) -> bool:
        """Return ``True`` if any of ``names`` was sent (including as null)."""
        return any(name in self._values for name in names)

    def items(self) -> Iterator[tuple[str, Any]]:
        return iter(self._values.items())

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"CasePatch({self._values!r}, expected_version={self.expected_version!r})"
