"""Share transaction ledger ORM model."""
from __future__ import annotations

import datetime as dt
import enum
import uuid
from decimal import Decimal

from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from aktiebok.models.base import Base


class ShareClass(str, enum.Enum):
    COMMON = "common"
    A = "A"
    B = "B"
    C = "C"
    PREFERENCE = "preference"


class ShareTransactionType(str, enum.Enum):
    ISSUANCE = "issuance"
    TRANSFER = "transfer"
    REDEMPTION = "redemption"
    SPLIT = "split"

    @property
    def requires_source(self) -> bool:
        return self in (ShareTransactionType.TRANSFER, ShareTransactionType.REDEMPTION)

    @property
    def creates_shares(self) -> bool:
        return self in (ShareTransactionType.ISSUANCE, ShareTransactionType.SPLIT)


class IssuanceKind(str, enum.Enum):
    FOUNDING = "founding"
    NEW_ISSUE = "new_issue"
    BONUS_ISSUE = "bonus_issue"


class ShareTransaction(Base):
    """Immutable entry in a tenant's share ledger."""

    __tablename__ = "share_transactions"
    __table_args__ = (
        CheckConstraint(
            "number_of_shares = share_number_to - share_number_from + 1",
            name="ck_share_transactions_count_matches_range",
        ),
        CheckConstraint("number_of_shares > 0", name="ck_share_transactions_positive_count"),
        Index("ix_share_transactions_tenant_id", "tenant_id"),
        Index("ix_share_transactions_tenant_date", "tenant_id", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[ShareTransactionType] = mapped_column(
        SAEnum(ShareTransactionType, name="share_transaction_type"), nullable=False
    )
    issuance_kind: Mapped[IssuanceKind | None] = mapped_column(
        SAEnum(IssuanceKind, name="issuance_kind"), nullable=True
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    from_shareholder_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="RESTRICT"), nullable=True
    )
    to_shareholder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="RESTRICT"), nullable=False
    )
    share_class: Mapped[ShareClass] = mapped_column(
        SAEnum(ShareClass, name="share_class"), nullable=False
    )
    number_of_shares: Mapped[int] = mapped_column(BigInteger, nullable=False)
    share_number_from: Mapped[int] = mapped_column(BigInteger, nullable=False)
    share_number_to: Mapped[int] = mapped_column(BigInteger, nullable=False)
    price_per_share: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    nominal_value: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    votes_per_share: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    decision_id: Mapped[str | None] = mapped_column(String(64))
    meeting_id: Mapped[str | None] = mapped_column(String(64))
    registered_by: Mapped[str] = mapped_column(String(320), nullable=False)
    registered_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


__all__ = ["IssuanceKind", "ShareClass", "ShareTransaction", "ShareTransactionType"]
