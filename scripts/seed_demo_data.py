"""Seed script for a demo tenant with a founded share register."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from aktiebok.core.config import get_settings
from aktiebok.db.session import SessionLocal, engine
from aktiebok.models import (
    Base,
    IssuanceKind,
    ShareClass,
    Shareholder,
    ShareholderType,
    ShareTransactionType,
    Tenant,
    TenantStatus,
)
from aktiebok.services.transactions import ShareTransactionService
from aktiebok.services.validation import ShareTransactionInput

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_ACTOR = "seed@demo.local"
DEMO_SHAREHOLDERS = (
    ("Anna Lindqvist", ShareholderType.INDIVIDUAL, "19780412-1234", ShareClass.A, 1, 600, Decimal("10")),
    ("Norrsken Invest AB", ShareholderType.COMPANY, "556677-8899", ShareClass.B, 1, 300, Decimal("1")),
    ("Fjällfonden", ShareholderType.FUND, "515602-1122", ShareClass.B, 301, 400, Decimal("1")),
)


def _ensure_tenant(session: Session, tenant_id: str) -> None:
    if session.get(Tenant, tenant_id) is not None:
        logger.info("Tenant %s already exists", tenant_id)
        return
    session.add(
        Tenant(
            id=tenant_id,
            name="Demo Bolag AB",
            organization_number="556000-0000",
            status=TenantStatus.ACTIVE,
        )
    )
    session.commit()
    logger.info("Created tenant %s", tenant_id)


def seed(session: Session) -> None:
    """Create the demo tenant, its shareholders and their founding issuances."""

    tenant_id = get_settings().default_tenant_id
    _ensure_tenant(session, tenant_id)
    service = ShareTransactionService(session)

    for name, holder_type, number, share_class, first, last, votes in DEMO_SHAREHOLDERS:
        existing = session.scalars(
            select(Shareholder).where(
                Shareholder.tenant_id == tenant_id, Shareholder.organization_number == number
            )
        ).first()
        if existing is not None:
            logger.info("Shareholder %s already exists", name)
            continue

        shareholder = Shareholder(tenant_id=tenant_id, name=name, type=holder_type, organization_number=number)
        session.add(shareholder)
        session.flush()
        shareholder_id = shareholder.id
        session.commit()

        service.create_transaction(
            tenant_id,
            ShareTransactionInput(
                type=ShareTransactionType.ISSUANCE,
                issuance_kind=IssuanceKind.FOUNDING,
                to_shareholder_id=shareholder_id,
                share_class=share_class,
                number_of_shares=last - first + 1,
                share_number_from=first,
                share_number_to=last,
                date=date(2020, 1, 15),
                description="Bolagsbildning",
                price_per_share=Decimal("1"),
                nominal_value=Decimal("1"),
                votes_per_share=votes,
            ),
            registered_by=SEED_ACTOR,
        )
        logger.info("Issued %s-%s of class %s to %s", first, last, share_class.value, name)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed(session)


if __name__ == "__main__":
    main()
