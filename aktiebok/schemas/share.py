"""Pydantic schemas for share positions, transactions and the cap table."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from aktiebok.models import IssuanceKind, ShareClass, ShareTransactionType


class SharePositionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    shareholder_id: str
    share_class: ShareClass
    share_number_from: int
    share_number_to: int
    number_of_shares: int
    nominal_value: Decimal
    votes_per_share: Decimal
    acquisition_date: dt.date
    acquisition_price: Decimal | None = None
    transaction_id: str
    source_position_id: str | None = None
    deactivated_by_transaction_id: str | None = None
    is_active: bool


class ShareTransactionCreate(BaseModel):
    type: ShareTransactionType
    issuance_kind: IssuanceKind | None = None
    date: dt.date = Field(default_factory=dt.date.today)
    description: str = Field(default="", max_length=2000)
    from_shareholder_id: str | None = Field(default=None, max_length=36)
    to_shareholder_id: str = Field(..., min_length=1, max_length=36)
    share_class: ShareClass = ShareClass.COMMON
    number_of_shares: int = Field(..., gt=0)
    share_number_from: int = Field(..., gt=0)
    share_number_to: int = Field(..., gt=0)
    price_per_share: Decimal | None = Field(default=None, ge=0, max_digits=18, decimal_places=4)
    total_amount: Decimal | None = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    nominal_value: Decimal = Field(default=Decimal("1"), ge=0, max_digits=18, decimal_places=4)
    votes_per_share: Decimal = Field(default=Decimal("1"), ge=0, max_digits=10, decimal_places=4)
    decision_id: str | None = Field(default=None, max_length=64)
    meeting_id: str | None = Field(default=None, max_length=64)


class ShareTransactionCreated(BaseModel):
    id: str
    type: ShareTransactionType
    number_of_shares: int
    share_class: ShareClass


class ShareTransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: ShareTransactionType
    issuance_kind: IssuanceKind | None = None
    date: dt.date
    description: str
    from_shareholder_id: str | None = None
    to_shareholder_id: str
    share_class: ShareClass
    number_of_shares: int
    share_number_from: int
    share_number_to: int
    price_per_share: Decimal | None = None
    total_amount: Decimal | None = None
    nominal_value: Decimal
    votes_per_share: Decimal
    decision_id: str | None = None
    meeting_id: str | None = None
    registered_by: str
    registered_at: dt.datetime


class ShareTransactionList(BaseModel):
    transactions: list[ShareTransactionRead]
    total: int


class ShareholderCapTableRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    shareholder_id: str
    name: str
    total_shares: int
    total_votes: Decimal
    ownership_percentage: Decimal
    voting_percentage: Decimal
    shares_by_class: dict[ShareClass, int]


class ShareClassCapTableRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    share_class: ShareClass
    total_shares: int
    votes_per_share: Decimal
    total_votes: Decimal
    percentage_of_total: Decimal


class CapTableRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_shares: int
    total_votes: Decimal
    total_share_capital: Decimal
    shareholders: list[ShareholderCapTableRead]
    share_classes: list[ShareClassCapTableRead]


class RegisterExport(BaseModel):
    cap_table: CapTableRead
    transactions: list[ShareTransactionRead]


class ProjectionReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    consistent: bool
    missing: list[tuple[str, str, int, int]]
    unexpected: list[tuple[str, str, int, int]]
    unapplied_transaction_ids: list[str]


__all__ = [
    "CapTableRead",
    "ProjectionReportRead",
    "RegisterExport",
    "ShareClassCapTableRead",
    "SharePositionRead",
    "ShareTransactionCreate",
    "ShareTransactionCreated",
    "ShareTransactionList",
    "ShareTransactionRead",
    "ShareholderCapTableRead",
]
