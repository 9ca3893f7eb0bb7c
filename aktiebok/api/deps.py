"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from aktiebok.db.session import SessionLocal
from aktiebok.services.errors import (
    ConflictError,
    NotFoundError,
    RegisterError,
    StorageError,
    ValidationError,
)

_STATUS_BY_ERROR: tuple[tuple[type[RegisterError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def http_error(exc: RegisterError) -> HTTPException:
    """Translate a register error into the HTTP error returned to clients."""

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


__all__ = ["get_db_session", "http_error"]
