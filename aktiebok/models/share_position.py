"""Share position ORM model."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aktiebok.models.base import Base, CreatedAtMixin
from aktiebok.models.share_transaction import ShareClass


class SharePosition(CreatedAtMixin, Base):
    """Contiguous block of numbered shares held by one shareholder."""

    __tablename__ = "shares"
    __table_args__ = (
        CheckConstraint(
            "number_of_shares = share_number_to - share_number_from + 1",
            name="ck_shares_count_matches_range",
        ),
        CheckConstraint("number_of_shares > 0", name="ck_shares_positive_count"),
        Index("ix_shares_tenant_id", "tenant_id"),
        Index("ix_shares_tenant_active", "tenant_id", "is_active"),
        Index("ix_shares_tenant_shareholder", "tenant_id", "shareholder_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    shareholder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="RESTRICT"), nullable=False
    )
    share_class: Mapped[ShareClass] = mapped_column(
        SAEnum(ShareClass, name="share_class"), nullable=False
    )
    share_number_from: Mapped[int] = mapped_column(BigInteger, nullable=False)
    share_number_to: Mapped[int] = mapped_column(BigInteger, nullable=False)
    number_of_shares: Mapped[int] = mapped_column(BigInteger, nullable=False)
    nominal_value: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    votes_per_share: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    acquisition_date: Mapped[date] = mapped_column(Date, nullable=False)
    acquisition_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    transaction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("share_transactions.id", ondelete="RESTRICT"), nullable=False
    )
    source_position_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("shares.id", ondelete="RESTRICT"), nullable=True
    )
    deactivated_by_transaction_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("share_transactions.id", ondelete="RESTRICT"), nullable=True
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    shareholder = relationship("Shareholder", back_populates="positions")

    __mapper_args__ = {"version_id_col": lock_version}


__all__ = ["SharePosition"]
