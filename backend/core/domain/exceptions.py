"""
core.domain.exceptions — Errors raised by the service layer.

Services and the pure engines under ``cases.domain`` raise these; none of
them knows about DRF. ``core.domain.exception_handler`` picks the HTTP
status from the class and copies ``code`` into the response body.

Mapping cheatsheet
------------------
┌──────────────────────┬──────┬──────────────────────────┐
│ Domain Exception     │ Code │ ``code`` attribute       │
├──────────────────────┼──────┼──────────────────────────┤
│ DomainError          │ 400  │ domain_error             │
│ ValidationError      │ 400  │ validation_error         │
│ DateError            │ 400  │ date_error               │
│   EndBeforeStart     │ 400  │ end_before_start         │
│   EndBeforeInProgress│ 400  │ end_before_in_progress   │
│ PermissionDenied     │ 403  │ permission_denied        │
│ NotFound             │ 404  │ not_found                │
│   ReferenceNotFound  │ 404  │ reference_not_found      │
│ Conflict             │ 409  │ conflict                 │
│   InvalidTransition  │ 409  │ invalid_transition       │
│   StaleVersion       │ 409  │ stale_version            │
│ PersistenceError     │ 500  │ persistence_error        │
└──────────────────────┴──────┴──────────────────────────┘

Raising one::

    from core.domain.exceptions import EndBeforeStart

    if end_date <= start_date:
        raise EndBeforeStart()
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Root of the hierarchy. Subclasses not mapped elsewhere answer 400.
    """

    code = "domain_error"

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class ValidationError(DomainError):
    """
    A required input is missing or malformed.

    Recoverable by the caller correcting the input.  Maps to HTTP 400.
    """

    code = "validation_error"

    def __init__(
        self,
        message: str = "The submitted data is invalid.",
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.field = field


class DateError(DomainError):
    """
    A case date combination violates the date invariants.

    The message is user-facing and is surfaced verbatim.  Maps to HTTP 400.
    """

    code = "date_error"


class EndBeforeStart(DateError):
    """The end date is not strictly later than the start date."""

    code = "end_before_start"

    def __init__(
        self, message: str = "The end date must be later than the start date.",
    ) -> None:
        super().__init__(message)


class EndBeforeInProgress(DateError):
    """The end date is not strictly later than the in-progress timestamp."""

    code = "end_before_in_progress"

    def __init__(
        self,
        message: str = (
            "The end date must be later than the time the case was "
            "set in progress."
        ),
    ) -> None:
        super().__init__(message)


class PermissionDenied(DomainError):
    """
    The caller may not touch this case or this part of it.

    Maps to HTTP 403.
    """

    code = "permission_denied"

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    No row matches the id in the URL.

    Maps to HTTP 404.
    """

    code = "not_found"

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class ReferenceNotFound(NotFound):
    """
    A foreign reference (requester, handler, counterparty) does not
    resolve in the Personnel / Partner directory.

    Maps to HTTP 404.
    """

    code = "reference_not_found"

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        ref: object = None,
    ) -> None:
        if message is None:
            label = (field or "reference").replace("_", " ")
            message = f"The {label} with id {ref} was not found."
        super().__init__(message)
        self.field = field
        self.ref = ref


class Conflict(DomainError):
    """
    The request is well-formed but clashes with the stored state.

    Maps to HTTP 409.
    """

    code = "conflict"

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    Raised in strict mode when the resolved status may not follow the
    stored one, e.g. ``CANCELLED`` to ``IN_PROGRESS``.
    """

    code = "invalid_transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid status transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            message = " ".join(parts) + "."
            if reason:
                message = f"{message} {reason}"
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class StaleVersion(Conflict):
    """
    The caller updated a case from an outdated read (optimistic lock).
    """

    code = "stale_version"

    def __init__(
        self,
        message: str | None = None,
        *,
        expected: int | None = None,
        actual: int | None = None,
    ) -> None:
        if message is None:
            message = (
                f"The case was modified by someone else "
                f"(expected version {expected}, current version {actual}). "
                f"Reload it and try again."
            )
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class PersistenceError(DomainError):
    """
    The store failed while executing the operation.

    Fatal for the operation (the transaction is rolled back) but not for
    the process.  Maps to HTTP 500.
    """

    code = "persistence_error"

    def __init__(self, message: str = "The operation could not be saved.") -> None:
        super().__init__(message)
