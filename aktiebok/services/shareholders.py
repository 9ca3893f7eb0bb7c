"""Shareholder directory for a tenant's register."""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import exists, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aktiebok.db.transaction import serializable_transaction
from aktiebok.models import AuditLog, SharePosition, ShareTransaction, Shareholder, Tenant
from aktiebok.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {"name", "type", "organization_number", "email", "phone_number", "address"}
)
_ORGANIZATION_NUMBER_CONSTRAINT = "uq_shareholders_tenant_organization_number"


def _integrity_conflict(exc: IntegrityError) -> ConflictError:
    # SQLite reports the columns, PostgreSQL the constraint name.
    message = str(exc.orig)
    if (
        _ORGANIZATION_NUMBER_CONSTRAINT in message
        or "shareholders.organization_number" in message
    ):
        return ConflictError("A shareholder with this organization number already exists")
    return ConflictError("The shareholder conflicts with existing register data")


class ShareholderDirectory:
    """Tenant-scoped lookups and maintenance of shareholders."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def find(self, tenant_id: str, shareholder_id: str) -> Shareholder | None:
        shareholder = self._session.get(Shareholder, shareholder_id)
        if shareholder is None or shareholder.tenant_id != tenant_id:
            return None
        return shareholder

    def get(self, tenant_id: str, shareholder_id: str) -> Shareholder:
        shareholder = self.find(tenant_id, shareholder_id)
        if shareholder is None:
            raise NotFoundError(f"Shareholder '{shareholder_id}' was not found")
        return shareholder

    def list(self, tenant_id: str, *, active_only: bool = False) -> Sequence[Shareholder]:
        statement = select(Shareholder).where(Shareholder.tenant_id == tenant_id)
        if active_only:
            statement = statement.where(Shareholder.is_active.is_(True))
        return self._session.scalars(statement.order_by(Shareholder.name, Shareholder.id)).all()

    def list_active(self, tenant_id: str) -> Sequence[Shareholder]:
        return self.list(tenant_id, active_only=True)

    def names(self, tenant_id: str) -> dict[str, str]:
        """Map shareholder ids to display names, inactive shareholders included."""

        rows = self._session.execute(
            select(Shareholder.id, Shareholder.name).where(Shareholder.tenant_id == tenant_id)
        )
        return {shareholder_id: name for shareholder_id, name in rows}

    def create(self, tenant_id: str, attributes: Mapping[str, Any], *, actor: str | None = None) -> Shareholder:
        if self._session.get(Tenant, tenant_id) is None:
            raise NotFoundError(f"Tenant '{tenant_id}' was not found")

        shareholder = Shareholder(
            tenant_id=tenant_id,
            **{key: value for key, value in attributes.items() if key in _UPDATABLE_FIELDS},
        )
        self._session.add(shareholder)
        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            raise _integrity_conflict(exc) from exc

        self._record(tenant_id, actor, "shareholder.created", shareholder.id)
        self._session.commit()
        logger.info(
            "shareholder created",
            extra={"tenant_id": tenant_id, "shareholder_id": shareholder.id, "type": shareholder.type.value},
        )
        return shareholder

    def update(
        self,
        tenant_id: str,
        shareholder_id: str,
        changes: Mapping[str, Any],
        *,
        actor: str | None = None,
    ) -> Shareholder:
        shareholder = self.get(tenant_id, shareholder_id)
        for field_name, value in changes.items():
            if field_name in _UPDATABLE_FIELDS:
                setattr(shareholder, field_name, value)

        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            raise _integrity_conflict(exc) from exc

        self._record(tenant_id, actor, "shareholder.updated", shareholder.id, sorted(changes))
        self._session.commit()
        return shareholder

    def remove(self, tenant_id: str, shareholder_id: str, *, actor: str | None = None) -> bool:
        """Delete a shareholder, or deactivate one the ledger still refers to.

        Returns ``True`` when the row was deleted. Shareholders holding active
        positions cannot be removed.
        """

        with serializable_transaction(self._session):
            shareholder = self.get(tenant_id, shareholder_id)
            if self._has_active_positions(tenant_id, shareholder_id):
                raise ConflictError("Cannot delete shareholder with active shares")

            if self._in_ledger(tenant_id, shareholder_id):
                shareholder.is_active = False
                self._record(tenant_id, actor, "shareholder.deactivated", shareholder_id)
                deleted = False
            else:
                self._session.delete(shareholder)
                self._record(tenant_id, actor, "shareholder.deleted", shareholder_id)
                deleted = True

        logger.info(
            "shareholder removed",
            extra={"tenant_id": tenant_id, "shareholder_id": shareholder_id, "deleted": deleted},
        )
        return deleted

    def refresh_activity(self, tenant_id: str, shareholder_ids: Sequence[str]) -> None:
        """Set ``is_active`` from whether each shareholder still holds an active position."""

        for shareholder_id in dict.fromkeys(shareholder_ids):
            shareholder = self.get(tenant_id, shareholder_id)
            active = self._has_active_positions(tenant_id, shareholder_id)
            if shareholder.is_active != active:
                shareholder.is_active = active
        self._session.flush()

    def _has_active_positions(self, tenant_id: str, shareholder_id: str) -> bool:
        statement = select(
            exists().where(
                SharePosition.tenant_id == tenant_id,
                SharePosition.shareholder_id == shareholder_id,
                SharePosition.is_active.is_(True),
            )
        )
        return bool(self._session.scalar(statement))

    def _in_ledger(self, tenant_id: str, shareholder_id: str) -> bool:
        statement = select(
            exists().where(
                ShareTransaction.tenant_id == tenant_id,
                or_(
                    ShareTransaction.to_shareholder_id == shareholder_id,
                    ShareTransaction.from_shareholder_id == shareholder_id,
                ),
            )
        )
        return bool(self._session.scalar(statement))

    def _record(
        self,
        tenant_id: str,
        actor: str | None,
        action: str,
        shareholder_id: str,
        fields: list[str] | None = None,
    ) -> None:
        self._session.add(
            AuditLog(
                tenant_id=tenant_id,
                actor_email=actor,
                action=action,
                resource_type="shareholder",
                resource_id=shareholder_id,
                payload={"fields": fields} if fields else None,
            )
        )


__all__ = ["ShareholderDirectory"]
