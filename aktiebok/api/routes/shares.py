"""Share transaction, position, cap table and export endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from aktiebok.api.deps import get_db_session, http_error
from aktiebok.api.routes.auth import READ_ROLES, WRITE_ROLES, AuthenticatedUser, require_role
from aktiebok.core.config import get_settings
from aktiebok.schemas.share import (
    CapTableRead,
    ProjectionReportRead,
    RegisterExport,
    SharePositionRead,
    ShareTransactionCreate,
    ShareTransactionCreated,
    ShareTransactionList,
    ShareTransactionRead,
)
from aktiebok.services.cap_table import CapTableSummary, compute_cap_table
from aktiebok.services.errors import RegisterError
from aktiebok.services.export import CSV_MEDIA_TYPE, export_filename, render_csv
from aktiebok.services.ledger import ShareTransactionLedger
from aktiebok.services.positions import SharePositionStore
from aktiebok.services.shareholders import ShareholderDirectory
from aktiebok.services.transactions import ShareTransactionService
from aktiebok.services.validation import ShareTransactionInput

router = APIRouter(prefix="/shares")


def _cap_table(session: Session, tenant_id: str) -> CapTableSummary:
    positions = SharePositionStore(session).list_active(tenant_id)
    names = ShareholderDirectory(session).names(tenant_id)
    return compute_cap_table(positions, names)


@router.post(
    "/transactions",
    response_model=ShareTransactionCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_share_transaction(
    payload: ShareTransactionCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*WRITE_ROLES)),
) -> ShareTransactionCreated:
    candidate = ShareTransactionInput(**payload.model_dump())
    try:
        result = ShareTransactionService(session).create_transaction(
            user.tenant_id, candidate, registered_by=user.email
        )
    except RegisterError as exc:
        raise http_error(exc) from exc

    entry = result.transaction
    return ShareTransactionCreated(
        id=entry.id,
        type=entry.type,
        number_of_shares=entry.number_of_shares,
        share_class=entry.share_class,
    )


@router.get("/transactions", response_model=ShareTransactionList)
def list_share_transactions(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*READ_ROLES)),
) -> ShareTransactionList:
    entries = ShareTransactionLedger(session).list(user.tenant_id)
    return ShareTransactionList(
        transactions=[ShareTransactionRead.model_validate(entry) for entry in entries],
        total=len(entries),
    )


@router.get("/transactions/{transaction_id}", response_model=ShareTransactionRead)
def get_share_transaction(
    transaction_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*READ_ROLES)),
) -> ShareTransactionRead:
    try:
        entry = ShareTransactionLedger(session).get(user.tenant_id, transaction_id)
    except RegisterError as exc:
        raise http_error(exc) from exc
    return ShareTransactionRead.model_validate(entry)


@router.get("", response_model=list[SharePositionRead])
def list_share_positions(
    active_only: bool = True,
    shareholder_id: str | None = None,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*READ_ROLES)),
) -> list[SharePositionRead]:
    store = SharePositionStore(session)
    if shareholder_id is not None:
        positions = store.list_by_shareholder(
            user.tenant_id, shareholder_id, include_inactive=not active_only
        )
    elif active_only:
        positions = store.list_active(user.tenant_id)
    else:
        positions = store.list(user.tenant_id)
    return [SharePositionRead.model_validate(position) for position in positions]


@router.get("/cap-table", response_model=CapTableRead)
def get_cap_table(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*READ_ROLES)),
) -> CapTableRead:
    return CapTableRead.model_validate(_cap_table(session, user.tenant_id))


@router.get("/export", response_model=RegisterExport)
def export_register(
    format: str = "csv",
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*READ_ROLES)),
) -> Response | RegisterExport:
    cap_table = _cap_table(session, user.tenant_id)
    transactions = ShareTransactionLedger(session).list(user.tenant_id)

    if format == "csv":
        content = render_csv(
            cap_table, transactions, delimiter=get_settings().export_csv_delimiter
        )
        return Response(
            content=content,
            media_type=CSV_MEDIA_TYPE,
            headers={
                "Content-Disposition": f'attachment; filename="{export_filename(user.tenant_id)}"'
            },
        )

    return RegisterExport(
        cap_table=CapTableRead.model_validate(cap_table),
        transactions=[ShareTransactionRead.model_validate(entry) for entry in transactions],
    )


@router.get("/verify", response_model=ProjectionReportRead)
def verify_share_positions(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role(*WRITE_ROLES)),
) -> ProjectionReportRead:
    entries = ShareTransactionLedger(session).list_chronological(user.tenant_id)
    report = SharePositionStore(session).verify_projection(user.tenant_id, entries)
    return ProjectionReportRead.model_validate(report)


__all__ = [
    "create_share_transaction",
    "export_register",
    "get_cap_table",
    "get_share_transaction",
    "list_share_positions",
    "list_share_transactions",
    "router",
    "verify_share_positions",
]
