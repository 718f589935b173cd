"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF ``EXCEPTION_HANDLER`` rendering those exceptions.
notifications      In-app notification creation helper.
chat_webhook       Outbound chat announcement for new cases.
transactions       Helpers for ``transaction.atomic`` + ``select_for_update``.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.notifications import NotificationService
    from core.domain.transactions import atomic_write, lock_for_update
"""
