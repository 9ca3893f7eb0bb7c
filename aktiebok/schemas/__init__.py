"""Pydantic schemas package."""

from .share import (
    CapTableRead,
    ProjectionReportRead,
    RegisterExport,
    SharePositionRead,
    ShareTransactionCreate,
    ShareTransactionCreated,
    ShareTransactionList,
    ShareTransactionRead,
)
from .shareholder import (
    Address,
    ShareholderCreate,
    ShareholderDetail,
    ShareholderRead,
    ShareholderUpdate,
)

__all__ = [
    "Address",
    "CapTableRead",
    "ProjectionReportRead",
    "RegisterExport",
    "SharePositionRead",
    "ShareTransactionCreate",
    "ShareTransactionCreated",
    "ShareTransactionList",
    "ShareTransactionRead",
    "ShareholderCreate",
    "ShareholderDetail",
    "ShareholderRead",
    "ShareholderUpdate",
]
