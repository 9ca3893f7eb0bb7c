"""ORM models package."""
from .audit_log import AuditLog
from .base import Base, CreatedAtMixin, TimestampMixin
from .share_position import SharePosition
from .share_transaction import IssuanceKind, ShareClass, ShareTransaction, ShareTransactionType
from .shareholder import Shareholder, ShareholderType
from .tenant import Tenant, TenantStatus

__all__ = [
    "AuditLog",
    "Base",
    "CreatedAtMixin",
    "IssuanceKind",
    "ShareClass",
    "SharePosition",
    "ShareTransaction",
    "ShareTransactionType",
    "Shareholder",
    "ShareholderType",
    "Tenant",
    "TenantStatus",
    "TimestampMixin",
]
