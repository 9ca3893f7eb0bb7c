"""Registration of share transactions: validate, record and apply atomically."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aktiebok.db.transaction import is_serialization_failure, serializable_transaction
from aktiebok.models import AuditLog, SharePosition, ShareTransaction
from aktiebok.obs.metrics import record_share_transaction
from aktiebok.obs.tracing import register_span
from aktiebok.services.errors import (
    ConflictError,
    NotFoundError,
    RegisterError,
    StorageError,
    ValidationError,
)
from aktiebok.services.ledger import ShareTransactionLedger
from aktiebok.services.positions import SharePositionStore, plan_position_changes
from aktiebok.services.shareholders import ShareholderDirectory
from aktiebok.services.validation import ShareTransactionInput, TransactionValidator

logger = logging.getLogger(__name__)

_OUTCOMES: dict[type[RegisterError], str] = {
    NotFoundError: "not_found",
    ValidationError: "invalid",
    ConflictError: "conflict",
    StorageError: "storage_error",
}


@dataclass(slots=True, frozen=True)
class RegistrationResult:
    """Ledger entry together with the positions it produced."""

    transaction: ShareTransaction
    created_positions: tuple[SharePosition, ...]
    deactivated_position_ids: tuple[str, ...]


class ShareTransactionService:
    """Registers share transactions for one tenant session."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._ledger = ShareTransactionLedger(session)
        self._positions = SharePositionStore(session)
        self._shareholders = ShareholderDirectory(session)
        self._validator = TransactionValidator(session)

    def create_transaction(
        self,
        tenant_id: str,
        candidate: ShareTransactionInput,
        *,
        registered_by: str,
    ) -> RegistrationResult:
        """Validate ``candidate`` and apply it to the ledger and positions in one transaction.

        Nothing is written unless every step succeeds. Concurrent changes to the
        consumed position surface as ``ConflictError``; the call is never retried.
        """

        with register_span(
            "share_transaction.create",
            tenant_id=tenant_id,
            transaction_type=candidate.type.value,
            share_class=candidate.share_class.value,
        ):
            try:
                with serializable_transaction(self._session):
                    result = self._apply(tenant_id, candidate, registered_by=registered_by)
            except RegisterError as exc:
                self._reject(tenant_id, candidate, exc)
                raise
            except SQLAlchemyError as exc:
                error: RegisterError
                if is_serialization_failure(exc):
                    error = ConflictError("The register was changed concurrently, retry the transaction")
                else:
                    error = StorageError("The share register could not be updated")
                self._reject(tenant_id, candidate, error)
                raise error from exc

        record_share_transaction(candidate.type.value, "registered")
        logger.info(
            "share transaction registered",
            extra={
                "tenant_id": tenant_id,
                "transaction_id": result.transaction.id,
                "type": candidate.type.value,
                "share_class": candidate.share_class.value,
                "number_of_shares": candidate.number_of_shares,
                "registered_by": registered_by,
            },
        )
        return result

    def _apply(
        self, tenant_id: str, candidate: ShareTransactionInput, *, registered_by: str
    ) -> RegistrationResult:
        validated = self._validator.validate(tenant_id, candidate)
        data = validated.transaction
        now = datetime.now(timezone.utc)

        entry = self._ledger.append(
            ShareTransaction(
                tenant_id=tenant_id,
                type=data.type,
                issuance_kind=data.issuance_kind,
                date=data.date,
                description=data.description,
                from_shareholder_id=data.from_shareholder_id,
                to_shareholder_id=data.to_shareholder_id,
                share_class=data.share_class,
                number_of_shares=data.number_of_shares,
                share_number_from=data.share_number_from,
                share_number_to=data.share_number_to,
                price_per_share=data.price_per_share,
                total_amount=data.total_amount,
                nominal_value=data.nominal_value,
                votes_per_share=data.votes_per_share,
                decision_id=data.decision_id,
                meeting_id=data.meeting_id,
                registered_by=registered_by,
                registered_at=now,
            )
        )

        plan = plan_position_changes(entry, validated.source_position)
        if validated.source_position is not None:
            self._positions.deactivate(validated.source_position, transaction_id=entry.id, now=now)
        created = tuple(
            self._positions.create(tenant_id=tenant_id, draft=draft) for draft in plan.create
        )

        touched = [draft.shareholder_id for draft in plan.create]
        if data.type.requires_source and data.from_shareholder_id:
            touched.append(data.from_shareholder_id)
        self._shareholders.refresh_activity(tenant_id, touched)

        self._session.add(
            AuditLog(
                tenant_id=tenant_id,
                actor_email=registered_by,
                action=f"share_transaction.{data.type.value}",
                resource_type="share_transaction",
                resource_id=entry.id,
                payload={
                    "share_class": data.share_class.value,
                    "share_number_from": data.share_number_from,
                    "share_number_to": data.share_number_to,
                    "from_shareholder_id": data.from_shareholder_id,
                    "to_shareholder_id": data.to_shareholder_id,
                    "deactivated": list(plan.deactivate),
                    "created": [position.id for position in created],
                },
            )
        )
        self._session.flush()

        return RegistrationResult(
            transaction=entry,
            created_positions=created,
            deactivated_position_ids=plan.deactivate,
        )

    @staticmethod
    def _reject(tenant_id: str, candidate: ShareTransactionInput, exc: RegisterError) -> None:
        outcome = _OUTCOMES.get(type(exc), "error")
        record_share_transaction(candidate.type.value, outcome)
        logger.warning(
            "share transaction rejected",
            extra={
                "tenant_id": tenant_id,
                "type": candidate.type.value,
                "outcome": outcome,
                "reason": str(exc),
            },
        )


__all__ = ["RegistrationResult", "ShareTransactionService"]
