"""
core.domain.transactions — Atomic write blocks and row locks.

Every write path in the service layer opens one ``atomic_write`` block.
Read-modify-write paths take the row with ``lock_for_update`` before
reading it, so two writers on the same row run one after the other.

``atomic_write`` is also the only place where ``django.db.DatabaseError``
is turned into ``PersistenceError``.

Usage::

    from core.domain.transactions import atomic_write, lock_for_update

    with atomic_write("update case %s", case_id):
        case = lock_for_update(Case, case_id)
        ...
        case.save()
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Iterator, TypeVar

from django.db import DatabaseError, models, transaction

from core.domain.exceptions import NotFound, PersistenceError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)


@contextlib.contextmanager
def atomic_write(label: str, *args: Any) -> Iterator[None]:
    """
    Run the block in ``transaction.atomic()``.

    A ``DatabaseError`` inside the block rolls back and surfaces as
    ``PersistenceError``. Domain errors roll back and propagate as they are.

    Args:
        label: %-style name of the operation for the failure log line.
        *args: Values for ``label``.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.error("Persistence failure during " + label, *args, exc_info=True)
        raise PersistenceError() from exc


def lock_for_update(model_class: type[M], pk: Any) -> M:
    """
    ``select_for_update().get(pk=pk)``; call it inside ``atomic_write``.

    Raises:
        NotFound: No row has that primary key, or the key is malformed.
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk)
    except (model_class.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"{model_class.__name__} {pk} does not exist.")
