"""Share register schema: tenants, shareholders, ledger, positions and audit log."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261018_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None

# Enum columns store member names, matching the ORM mapping.
SHARE_CLASS_VALUES = ("COMMON", "A", "B", "C", "PREFERENCE")
_ENUM_TYPES = (
    "tenant_status",
    "shareholder_type",
    "share_transaction_type",
    "issuance_kind",
    "share_class",
)


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def upgrade() -> None:  # noqa: D401
    """Create the register tables and constraints."""

    op.create_table(
        "tenants",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("organization_number", sa.String(length=32)),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "SUSPENDED", "INACTIVE", name="tenant_status"),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "shareholders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "type",
            sa.Enum("INDIVIDUAL", "COMPANY", "FUND", name="shareholder_type"),
            nullable=False,
        ),
        sa.Column("organization_number", sa.String(length=32)),
        sa.Column("email", sa.String(length=320)),
        sa.Column("phone_number", sa.String(length=32)),
        sa.Column("address", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "tenant_id", "organization_number", name="uq_shareholders_tenant_organization_number"
        ),
    )
    op.create_index("ix_shareholders_tenant_id", "shareholders", ["tenant_id"])

    op.create_table(
        "share_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "type",
            sa.Enum("ISSUANCE", "TRANSFER", "REDEMPTION", "SPLIT", name="share_transaction_type"),
            nullable=False,
        ),
        sa.Column(
            "issuance_kind",
            sa.Enum("FOUNDING", "NEW_ISSUE", "BONUS_ISSUE", name="issuance_kind"),
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "from_shareholder_id",
            sa.String(length=36),
            sa.ForeignKey("shareholders.id", ondelete="RESTRICT"),
        ),
        sa.Column(
            "to_shareholder_id",
            sa.String(length=36),
            sa.ForeignKey("shareholders.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("share_class", sa.Enum(*SHARE_CLASS_VALUES, name="share_class"), nullable=False),
        sa.Column("number_of_shares", sa.BigInteger(), nullable=False),
        sa.Column("share_number_from", sa.BigInteger(), nullable=False),
        sa.Column("share_number_to", sa.BigInteger(), nullable=False),
        sa.Column("price_per_share", sa.Numeric(18, 4)),
        sa.Column("total_amount", sa.Numeric(18, 2)),
        sa.Column("nominal_value", sa.Numeric(18, 4), nullable=False),
        sa.Column("votes_per_share", sa.Numeric(10, 4), nullable=False),
        sa.Column("decision_id", sa.String(length=64)),
        sa.Column("meeting_id", sa.String(length=64)),
        sa.Column("registered_by", sa.String(length=320), nullable=False),
        sa.Column("registered_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "number_of_shares = share_number_to - share_number_from + 1",
            name="ck_share_transactions_count_matches_range",
        ),
        sa.CheckConstraint("number_of_shares > 0", name="ck_share_transactions_positive_count"),
    )
    op.create_index("ix_share_transactions_tenant_id", "share_transactions", ["tenant_id"])
    op.create_index("ix_share_transactions_tenant_date", "share_transactions", ["tenant_id", "date"])

    op.create_table(
        "shares",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "shareholder_id",
            sa.String(length=36),
            sa.ForeignKey("shareholders.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "share_class",
            postgresql.ENUM(*SHARE_CLASS_VALUES, name="share_class", create_type=False),
            nullable=False,
        ),
        sa.Column("share_number_from", sa.BigInteger(), nullable=False),
        sa.Column("share_number_to", sa.BigInteger(), nullable=False),
        sa.Column("number_of_shares", sa.BigInteger(), nullable=False),
        sa.Column("nominal_value", sa.Numeric(18, 4), nullable=False),
        sa.Column("votes_per_share", sa.Numeric(10, 4), nullable=False),
        sa.Column("acquisition_date", sa.Date(), nullable=False),
        sa.Column("acquisition_price", sa.Numeric(18, 4)),
        sa.Column(
            "transaction_id",
            sa.String(length=36),
            sa.ForeignKey("share_transactions.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "source_position_id",
            sa.String(length=36),
            sa.ForeignKey("shares.id", ondelete="RESTRICT"),
        ),
        sa.Column(
            "deactivated_by_transaction_id",
            sa.String(length=36),
            sa.ForeignKey("share_transactions.id", ondelete="RESTRICT"),
        ),
        sa.Column("deactivated_at", sa.DateTime(timezone=True)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "number_of_shares = share_number_to - share_number_from + 1",
            name="ck_shares_count_matches_range",
        ),
        sa.CheckConstraint("number_of_shares > 0", name="ck_shares_positive_count"),
    )
    op.create_index("ix_shares_tenant_id", "shares", ["tenant_id"])
    op.create_index("ix_shares_tenant_active", "shares", ["tenant_id", "is_active"])
    op.create_index("ix_shares_tenant_shareholder", "shares", ["tenant_id", "shareholder_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_email", sa.String(length=320)),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("resource_type", sa.String(length=128), nullable=False),
        sa.Column("resource_id", sa.String(length=128)),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_tenant_id", "audit_logs", ["tenant_id"])


def downgrade() -> None:  # noqa: D401
    """Drop the register tables and enum types."""

    op.drop_index("ix_audit_logs_tenant_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_shares_tenant_shareholder", table_name="shares")
    op.drop_index("ix_shares_tenant_active", table_name="shares")
    op.drop_index("ix_shares_tenant_id", table_name="shares")
    op.drop_table("shares")

    op.drop_index("ix_share_transactions_tenant_date", table_name="share_transactions")
    op.drop_index("ix_share_transactions_tenant_id", table_name="share_transactions")
    op.drop_table("share_transactions")

    op.drop_index("ix_shareholders_tenant_id", table_name="shareholders")
    op.drop_table("shareholders")

    op.drop_table("tenants")

    for name in _ENUM_TYPES:
        _drop_enum(name)
