"""Append-only share transaction ledger."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import event, select
from sqlalchemy.orm import Session, object_session

from aktiebok.models import ShareTransaction
from aktiebok.services.errors import LedgerImmutableError, NotFoundError

logger = logging.getLogger(__name__)


@event.listens_for(ShareTransaction, "before_update")
def _reject_ledger_update(mapper, connection, target: ShareTransaction) -> None:  # type: ignore[no-untyped-def]
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise LedgerImmutableError(f"Ledger entry '{target.id}' cannot be modified")


@event.listens_for(ShareTransaction, "before_delete")
def _reject_ledger_delete(mapper, connection, target: ShareTransaction) -> None:  # type: ignore[no-untyped-def]
    raise LedgerImmutableError(f"Ledger entry '{target.id}' cannot be deleted")


class ShareTransactionLedger:
    """Tenant-scoped access to ledger entries. Entries are only ever inserted."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(self, entry: ShareTransaction) -> ShareTransaction:
        if entry.registered_at is None:
            entry.registered_at = datetime.now(timezone.utc)
        self._session.add(entry)
        self._session.flush()
        logger.info(
            "ledger entry appended",
            extra={
                "tenant_id": entry.tenant_id,
                "transaction_id": entry.id,
                "type": entry.type.value,
                "share_class": entry.share_class.value,
                "number_of_shares": entry.number_of_shares,
            },
        )
        return entry

    def get(self, tenant_id: str, transaction_id: str) -> ShareTransaction:
        entry = self._session.get(ShareTransaction, transaction_id)
        if entry is None or entry.tenant_id != tenant_id:
            raise NotFoundError(f"Share transaction '{transaction_id}' was not found")
        return entry

    def list(self, tenant_id: str) -> Sequence[ShareTransaction]:
        """Newest first: by date, then registration time, then id."""

        statement = (
            select(ShareTransaction)
            .where(ShareTransaction.tenant_id == tenant_id)
            .order_by(
                ShareTransaction.date.desc(),
                ShareTransaction.registered_at.desc(),
                ShareTransaction.id,
            )
        )
        return self._session.scalars(statement).all()

    def list_chronological(self, tenant_id: str) -> Sequence[ShareTransaction]:
        """Registration order, the order in which entries were applied to positions."""

        statement = (
            select(ShareTransaction)
            .where(ShareTransaction.tenant_id == tenant_id)
            .order_by(
                ShareTransaction.registered_at,
                ShareTransaction.date,
                ShareTransaction.id,
            )
        )
        return self._session.scalars(statement).all()


__all__ = ["ShareTransactionLedger"]
