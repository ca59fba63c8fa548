"""
Ledger unit of work - the transaction boundary of every stamp mutation.

Everything done inside `with LedgerUnitOfWork() as uow:` (row locks, counter
update, audit event, reward create/retract) commits together or not at all.
Database failures leave the block as ConflictError or PersistenceError.
"""

import logging

from django.db import DatabaseError, OperationalError, connections, router, transaction

from stampbook.conf import stampbook_settings
from stampbook.exceptions import ConflictError, PersistenceError
from stampbook.models import LoyaltyAccount

logger = logging.getLogger(__name__)


# lock_not_available, deadlock_detected, serialization_failure
_CONFLICT_SQLSTATES = {"55P03", "40P01", "40001"}
_CONFLICT_MESSAGES = ("database is locked", "database table is locked", "lock wait timeout")


def _sqlstate(exc: BaseException) -> str | None:
    cause = exc.__cause__
    return getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)


def is_lock_conflict(exc: DatabaseError) -> bool:
    """True for lock timeouts, deadlocks and serialization failures."""
    if _sqlstate(exc) in _CONFLICT_SQLSTATES:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _CONFLICT_MESSAGES)


def translate_database_error(exc: DatabaseError) -> PersistenceError | ConflictError:
    """Map a Django database exception onto the ledger error taxonomy."""
    if is_lock_conflict(exc):
        logger.warning("Ledger lock conflict: %s", exc)
        return ConflictError(detail=str(exc))

    logger.error("Ledger persistence failure: %s", exc)
    return PersistenceError(
        retryable=isinstance(exc, OperationalError),
        detail=str(exc),
    )


class LedgerUnitOfWork:
    """
    Atomic unit of work for one ledger operation.

    Usage:
        with LedgerUnitOfWork() as uow:
            handle = AccountLocator.lock(uow, "CR0001")
            ...

    On PostgreSQL the row lock wait is bounded by LOCK_TIMEOUT_MS so that a
    contended account surfaces as ConflictError instead of queueing forever.
    """

    def __init__(self, using: str | None = None):
        self.using = using or router.db_for_write(LoyaltyAccount)
        self._atomic = None

    @property
    def active(self) -> bool:
        return self._atomic is not None

    def __enter__(self):
        if self.active:
            raise RuntimeError("LedgerUnitOfWork is not reentrant")

        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()
        try:
            self._apply_lock_timeout()
        except DatabaseError as exc:
            self._close(type(exc), exc, exc.__traceback__)
            raise translate_database_error(exc) from exc
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        try:
            self._close(exc_type, exc_value, traceback)
        except DatabaseError as exc:
            # Commit itself failed
            raise translate_database_error(exc) from exc

        if isinstance(exc_value, DatabaseError):
            raise translate_database_error(exc_value) from exc_value
        return False

    def on_commit(self, func) -> None:
        """
        Run `func` after this unit of work (and any outer transaction) commits.

        Robust: by then the mutation is durable, so a failing callback is
        logged by Django and never reaches the caller as an error.
        """
        transaction.on_commit(func, using=self.using, robust=True)

    def _close(self, exc_type, exc_value, traceback) -> None:
        atomic, self._atomic = self._atomic, None
        atomic.__exit__(exc_type, exc_value, traceback)

    def _apply_lock_timeout(self) -> None:
        connection = connections[self.using]
        if connection.vendor != "postgresql":
            return

        timeout_ms = int(stampbook_settings.LOCK_TIMEOUT_MS)
        with connection.cursor() as cursor:
            # is_local=true: scoped to the current transaction
            cursor.execute("SELECT set_config('lock_timeout', %s, true)", [f"{timeout_ms}ms"])
