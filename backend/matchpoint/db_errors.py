"""Helpers for working with database/SQLAlchemy errors."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError

# serialization_failure, deadlock_detected
_TRANSIENT_SQLSTATES = {"40001", "40P01"}
_TRANSIENT_MESSAGES = ("database is locked", "database table is locked")


class WriteConflict(Exception):
    """A compare-and-set write matched no rows because another writer won."""


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_transient_error(exc: BaseException) -> bool:
    """Return ``True`` if retrying the whole transaction may succeed."""

    if isinstance(exc, WriteConflict):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True

    if _sqlstate(exc) in _TRANSIENT_SQLSTATES:
        return True

    message = str(getattr(exc, "orig", None) or exc).lower()
    return any(fragment in message for fragment in _TRANSIENT_MESSAGES)
