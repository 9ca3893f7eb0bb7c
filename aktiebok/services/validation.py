"""Validation of share transactions against the current register."""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from aktiebok.models import IssuanceKind, SharePosition, ShareClass, ShareTransactionType
from aktiebok.services.errors import NotFoundError, ValidationError
from aktiebok.services.positions import SharePositionStore
from aktiebok.services.shareholders import ShareholderDirectory


@dataclass(slots=True, frozen=True)
class ShareTransactionInput:
    """A share transaction as submitted, before it is checked or recorded."""

    type: ShareTransactionType
    to_shareholder_id: str
    share_class: ShareClass
    number_of_shares: int
    share_number_from: int
    share_number_to: int
    date: date
    from_shareholder_id: str | None = None
    issuance_kind: IssuanceKind | None = None
    description: str = ""
    price_per_share: Decimal | None = None
    total_amount: Decimal | None = None
    nominal_value: Decimal = Decimal("1")
    votes_per_share: Decimal = Decimal("1")
    decision_id: str | None = None
    meeting_id: str | None = None


@dataclass(slots=True, frozen=True)
class ValidatedTransaction:
    """Input that passed validation, with the position it consumes if any.

    For transfers and redemptions ``transaction`` carries the nominal value and
    votes per share of ``source_position`` rather than the submitted ones.
    """

    transaction: ShareTransactionInput
    source_position: SharePosition | None = None


class TransactionValidator:
    """Checks a transaction in a fixed order and stops at the first failure."""

    def __init__(self, session: Session) -> None:
        self._shareholders = ShareholderDirectory(session)
        self._positions = SharePositionStore(session)

    def validate(self, tenant_id: str, candidate: ShareTransactionInput) -> ValidatedTransaction:
        if self._shareholders.find(tenant_id, candidate.to_shareholder_id) is None:
            raise NotFoundError("Target shareholder not found")

        if candidate.share_number_to < candidate.share_number_from:
            raise ValidationError("share_number_to must be greater than or equal to share_number_from")

        expected = candidate.share_number_to - candidate.share_number_from + 1
        if candidate.number_of_shares != expected:
            raise ValidationError(
                f"number_of_shares ({candidate.number_of_shares}) does not match "
                f"share number range ({expected})"
            )

        if candidate.issuance_kind is not None and candidate.type is not ShareTransactionType.ISSUANCE:
            raise ValidationError("issuance_kind is only allowed on issuance transactions")

        if candidate.type.requires_source:
            return self._validate_consuming(tenant_id, candidate)
        return self._validate_creating(tenant_id, candidate)

    def _validate_consuming(
        self, tenant_id: str, candidate: ShareTransactionInput
    ) -> ValidatedTransaction:
        if not candidate.from_shareholder_id:
            raise ValidationError(
                "from_shareholder_id is required for transfer/redemption transactions"
            )
        if self._shareholders.find(tenant_id, candidate.from_shareholder_id) is None:
            raise NotFoundError("Source shareholder not found")
        if (
            candidate.type is ShareTransactionType.TRANSFER
            and candidate.from_shareholder_id == candidate.to_shareholder_id
        ):
            raise ValidationError("A transfer needs distinct source and target shareholders")

        source = self._positions.find_covering(
            tenant_id,
            shareholder_id=candidate.from_shareholder_id,
            share_class=candidate.share_class,
            share_number_from=candidate.share_number_from,
            share_number_to=candidate.share_number_to,
        )
        if source is None:
            raise ValidationError(
                f"Source shareholder holds no active {candidate.share_class.value} position covering "
                f"shares {candidate.share_number_from}-{candidate.share_number_to}"
            )

        transaction = replace(
            candidate,
            nominal_value=Decimal(source.nominal_value),
            votes_per_share=Decimal(source.votes_per_share),
        )
        return ValidatedTransaction(transaction=transaction, source_position=source)

    def _validate_creating(
        self, tenant_id: str, candidate: ShareTransactionInput
    ) -> ValidatedTransaction:
        if candidate.nominal_value < 0:
            raise ValidationError("nominal_value must not be negative")
        if candidate.votes_per_share < 0:
            raise ValidationError("votes_per_share must not be negative")

        overlapping = self._positions.find_overlapping(
            tenant_id,
            share_class=candidate.share_class,
            share_number_from=candidate.share_number_from,
            share_number_to=candidate.share_number_to,
        )
        if overlapping:
            taken = overlapping[0]
            raise ValidationError(
                f"Shares {taken.share_number_from}-{taken.share_number_to} of class "
                f"{candidate.share_class.value} are already issued"
            )

        multiplier = self._positions.votes_per_share_for_class(tenant_id, candidate.share_class)
        if multiplier is not None and multiplier != candidate.votes_per_share:
            raise ValidationError(
                f"Class {candidate.share_class.value} carries {multiplier} votes per share, "
                f"not {candidate.votes_per_share}"
            )

        return ValidatedTransaction(transaction=candidate)


__all__ = ["ShareTransactionInput", "TransactionValidator", "ValidatedTransaction"]
