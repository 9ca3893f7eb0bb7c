"""Shareholder ORM model."""
from __future__ import annotations

import enum
import uuid

from sqlalchemy import Enum as SAEnum
from sqlalchemy import Boolean, ForeignKey, Index, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aktiebok.models.base import Base, TimestampMixin


class ShareholderType(str, enum.Enum):
    INDIVIDUAL = "INDIVIDUAL"
    COMPANY = "COMPANY"
    FUND = "FUND"

    @property
    def is_legal_person(self) -> bool:
        return self is not ShareholderType.INDIVIDUAL


class Shareholder(TimestampMixin, Base):
    """Natural or legal person entered in a tenant's share register."""

    __tablename__ = "shareholders"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "organization_number", name="uq_shareholders_tenant_organization_number"
        ),
        Index("ix_shareholders_tenant_id", "tenant_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[ShareholderType] = mapped_column(
        SAEnum(ShareholderType, name="shareholder_type"),
        nullable=False,
        default=ShareholderType.INDIVIDUAL,
    )
    # Personnummer for individuals, organisationsnummer for legal persons.
    organization_number: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(String(320))
    phone_number: Mapped[str | None] = mapped_column(String(32))
    address: Mapped[dict | None] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    tenant = relationship("Tenant", back_populates="shareholders")
    positions = relationship("SharePosition", back_populates="shareholder")


__all__ = ["Shareholder", "ShareholderType"]
