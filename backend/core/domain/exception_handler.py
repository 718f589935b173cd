"""
core.domain.exception_handler — Renders domain errors at the API edge.

Services raise the exceptions in ``core.domain.exceptions``; this handler
turns them into ``{"detail": ..., "code": ...}`` responses with the
status listed in ``_STATUS_MAP``, so views never catch them.

Registered in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        "EXCEPTION_HANDLER": "core.domain.exception_handler.domain_exception_handler",
    }
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    Conflict,
    DomainError,
    NotFound,
    PermissionDenied,
    PersistenceError,
)

logger = logging.getLogger(__name__)

# First match wins; subclasses are listed before their bases.
_STATUS_MAP: dict[type, int] = {
    PersistenceError:  500,
    PermissionDenied:  403,
    NotFound:          404,
    Conflict:          409,
    DomainError:       400,  # catch-all base class last
}


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    Render DRF errors the DRF way and domain errors as ``detail`` + ``code``.

    Returns ``None`` for anything else so Django reports it as a 500.
    """
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    view_name = type(view).__name__ if view is not None else "unknown"

    # Most specific first
    for exc_class, status_code in _STATUS_MAP.items():
        if isinstance(exc, exc_class):
            if status_code >= 500:
                logger.error(
                    "Persistence failure in %s: %s",
                    view_name,
                    exc,
                    exc_info=exc,
                )
            else:
                logger.warning(
                    "%s rejected in %s: %s",
                    type(exc).__name__,
                    view_name,
                    exc,
                )
            return Response(
                {"detail": str(exc), "code": exc.code},
                status=status_code,
            )

    return None
