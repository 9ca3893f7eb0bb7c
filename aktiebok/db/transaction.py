"""Serializable transaction scope shared by the register services."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

SERIALIZATION_FAILURE = "40001"


def is_serialization_failure(exc: SQLAlchemyError) -> bool:
    """Return whether ``exc`` is PostgreSQL aborting a serializable transaction."""

    if not isinstance(exc, DBAPIError) or exc.orig is None:
        return False
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return code == SERIALIZATION_FAILURE


@contextmanager
def serializable_transaction(session: Session) -> Iterator[None]:
    """Run the block in a SERIALIZABLE transaction, committing on success."""

    bind = session.get_bind()
    if bind is None:
        raise RuntimeError("Session is not bound to an engine")

    if bind.dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))
    else:
        session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

    try:
        yield
        session.commit()
    except Exception:
        session.rollback()
        raise


__all__ = ["SERIALIZATION_FAILURE", "is_serialization_failure", "serializable_transaction"]
