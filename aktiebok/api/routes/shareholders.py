"""Shareholder directory endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from aktiebok.api.deps import get_db_session, http_error
from aktiebok.api.routes.auth import READ_ROLES, WRITE_ROLES, AuthenticatedUser, require_role
from aktiebok.schemas.shareholder import (
    ShareholderCreate,
    ShareholderDetail,
    ShareholderRead,
    ShareholderUpdate,
)
from aktiebok.schemas.share import SharePositionRead
from aktiebok.services.errors import RegisterError
from aktiebok.services.positions import SharePositionStore
from aktiebok.services.shareholders import ShareholderDirectory

router = APIRouter()


@router.post("/", response_model=ShareholderRead, status_code=status.HTTP_201_CREATED)
def create_shareholder(
    payload: ShareholderCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*WRITE_ROLES)),
) -> ShareholderRead:
    directory = ShareholderDirectory(session)
    try:
        shareholder = directory.create(user.tenant_id, payload.model_dump(), actor=user.email)
    except RegisterError as exc:
        raise http_error(exc) from exc
    return ShareholderRead.model_validate(shareholder)


@router.get("/", response_model=list[ShareholderRead])
def list_shareholders(
    active_only: bool = False,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*READ_ROLES)),
) -> list[ShareholderRead]:
    results = ShareholderDirectory(session).list(user.tenant_id, active_only=active_only)
    return [ShareholderRead.model_validate(item) for item in results]


@router.get("/{shareholder_id}", response_model=ShareholderDetail)
def get_shareholder(
    shareholder_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*READ_ROLES)),
) -> ShareholderDetail:
    try:
        shareholder = ShareholderDirectory(session).get(user.tenant_id, shareholder_id)
    except RegisterError as exc:
        raise http_error(exc) from exc

    positions = SharePositionStore(session).list_by_shareholder(
        user.tenant_id, shareholder_id, include_inactive=False
    )
    detail = ShareholderDetail.model_validate(shareholder)
    detail.positions = [SharePositionRead.model_validate(position) for position in positions]
    return detail


@router.put("/{shareholder_id}", response_model=ShareholderRead)
def update_shareholder(
    shareholder_id: str,
    payload: ShareholderUpdate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*WRITE_ROLES)),
) -> ShareholderRead:
    directory = ShareholderDirectory(session)
    try:
        shareholder = directory.update(
            user.tenant_id,
            shareholder_id,
            payload.model_dump(exclude_unset=True),
            actor=user.email,
        )
    except RegisterError as exc:
        raise http_error(exc) from exc
    return ShareholderRead.model_validate(shareholder)


@router.delete("/{shareholder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_shareholder(
    shareholder_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("OWNER")),
) -> Response:
    try:
        ShareholderDirectory(session).remove(user.tenant_id, shareholder_id, actor=user.email)
    except RegisterError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = [
    "create_shareholder",
    "delete_shareholder",
    "get_shareholder",
    "list_shareholders",
    "router",
    "update_shareholder",
]
