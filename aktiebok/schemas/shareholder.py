"""Pydantic schemas for shareholder resources."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from aktiebok.models.shareholder import ShareholderType
from aktiebok.schemas.share import SharePositionRead


class Address(BaseModel):
    street: str | None = Field(default=None, max_length=255)
    postal_code: str | None = Field(default=None, max_length=16)
    city: str | None = Field(default=None, max_length=128)
    country: str | None = Field(default="SE", max_length=64)


class ShareholderBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: ShareholderType = Field(default=ShareholderType.INDIVIDUAL)
    organization_number: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=320)
    phone_number: str | None = Field(default=None, max_length=32)
    address: Address | None = None


class ShareholderCreate(ShareholderBase):
    pass


class ShareholderUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    type: ShareholderType | None = None
    organization_number: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=320)
    phone_number: str | None = Field(default=None, max_length=32)
    address: Address | None = None


class ShareholderRead(ShareholderBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ShareholderDetail(ShareholderRead):
    positions: list[SharePositionRead] = Field(default_factory=list)


__all__ = [
    "Address",
    "ShareholderBase",
    "ShareholderCreate",
    "ShareholderDetail",
    "ShareholderRead",
    "ShareholderUpdate",
]
