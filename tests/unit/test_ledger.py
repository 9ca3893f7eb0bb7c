from __future__ import annotations

from datetime import date

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import text

from aktiebok.models import ShareTransactionType, Tenant
from aktiebok.services.errors import ConflictError, LedgerImmutableError, NotFoundError
from aktiebok.services.ledger import ShareTransactionLedger
from aktiebok.services.positions import SharePositionStore
from aktiebok.services.transactions import ShareTransactionService

TENANT_ID = "tenant-demo"


@pytest.fixture()
def anna(make_shareholder):
    return make_shareholder("Anna Lindqvist")


@pytest.fixture()
def founding(db_session, anna, build_input):
    return ShareTransactionService(db_session).create_transaction(
        TENANT_ID, build_input(to_shareholder_id=anna.id), registered_by="styrelse@example.com"
    )


def test_ledger_entries_cannot_be_updated(db_session, founding) -> None:
    entry = founding.transaction
    entry.description = "Rättelse"

    with pytest.raises(LedgerImmutableError):
        db_session.flush()
    db_session.rollback()


def test_ledger_entries_cannot_be_deleted(db_session, founding) -> None:
    db_session.delete(founding.transaction)

    with pytest.raises(LedgerImmutableError):
        db_session.flush()
    db_session.rollback()


def test_get_is_scoped_to_tenant(db_session, founding) -> None:
    ledger = ShareTransactionLedger(db_session)
    db_session.add(Tenant(id="tenant-other", name="Annat Bolag AB"))
    db_session.commit()

    assert ledger.get(TENANT_ID, founding.transaction.id).id == founding.transaction.id
    with pytest.raises(NotFoundError):
        ledger.get("tenant-other", founding.transaction.id)
    with pytest.raises(NotFoundError):
        ledger.get(TENANT_ID, "missing")


def test_list_is_newest_first_and_chronological_is_registration_order(
    db_session, anna, make_shareholder, build_input, founding
) -> None:
    bolag = make_shareholder("Norrsken Invest AB")
    service = ShareTransactionService(db_session)
    backdated = service.create_transaction(
        TENANT_ID,
        build_input(
            to_shareholder_id=bolag.id,
            share_number_from=101,
            share_number_to=150,
            number_of_shares=50,
            date=date(2023, 12, 1),
        ),
        registered_by="styrelse@example.com",
    )
    later = service.create_transaction(
        TENANT_ID,
        build_input(
            type=ShareTransactionType.TRANSFER,
            from_shareholder_id=anna.id,
            to_shareholder_id=bolag.id,
            share_number_from=1,
            share_number_to=10,
            number_of_shares=10,
            date=date(2024, 2, 1),
        ),
        registered_by="styrelse@example.com",
    )

    ledger = ShareTransactionLedger(db_session)

    assert [entry.id for entry in ledger.list(TENANT_ID)] == [
        later.transaction.id,
        founding.transaction.id,
        backdated.transaction.id,
    ]
    assert [entry.id for entry in ledger.list_chronological(TENANT_ID)] == [
        founding.transaction.id,
        backdated.transaction.id,
        later.transaction.id,
    ]


def test_deactivate_rejects_inactive_position(db_session, founding) -> None:
    store = SharePositionStore(db_session)
    (position,) = founding.created_positions
    position.is_active = False

    with pytest.raises(ConflictError, match="no longer active"):
        store.deactivate(position, transaction_id=founding.transaction.id)
    db_session.rollback()


def test_deactivate_detects_concurrent_change(db_session, founding) -> None:
    store = SharePositionStore(db_session)
    (position,) = founding.created_positions
    db_session.connection().execute(
        text("UPDATE shares SET lock_version = lock_version + 1 WHERE id = :id"),
        {"id": position.id},
    )

    with pytest.raises(ConflictError, match="modified concurrently"):
        store.deactivate(position, transaction_id=founding.transaction.id)
    db_session.rollback()


def test_store_queries(db_session, anna, founding) -> None:
    store = SharePositionStore(db_session)

    assert store.has_active_positions(TENANT_ID, anna.id)
    assert store.find_covering(
        TENANT_ID,
        shareholder_id=anna.id,
        share_class=founding.transaction.share_class,
        share_number_from=20,
        share_number_to=30,
    ) is not None
    assert store.find_overlapping(
        TENANT_ID,
        share_class=founding.transaction.share_class,
        share_number_from=100,
        share_number_to=200,
    )
    assert store.votes_per_share_for_class(TENANT_ID, founding.transaction.share_class) == 1


def test_verify_projection_after_registrations(db_session, anna, founding) -> None:
    report = SharePositionStore(db_session).verify_projection(
        TENANT_ID, ShareTransactionLedger(db_session).list_chronological(TENANT_ID)
    )

    assert report.consistent


def test_registration_reports_lost_race_as_conflict(
    db_session, anna, make_shareholder, build_input, founding, monkeypatch
) -> None:
    bolag = make_shareholder("Norrsken Invest AB")
    original = SharePositionStore.find_covering

    def find_then_race(self, tenant_id, **criteria):
        position = original(self, tenant_id, **criteria)
        self._session.connection().execute(
            text("UPDATE shares SET lock_version = lock_version + 1 WHERE id = :id"),
            {"id": position.id},
        )
        return position

    monkeypatch.setattr(SharePositionStore, "find_covering", find_then_race)
    labels = {"type": "transfer", "outcome": "conflict"}
    before = REGISTRY.get_sample_value("aktiebok_share_transactions_total", labels) or 0.0

    with pytest.raises(ConflictError, match="modified concurrently"):
        ShareTransactionService(db_session).create_transaction(
            TENANT_ID,
            build_input(
                type=ShareTransactionType.TRANSFER,
                from_shareholder_id=anna.id,
                to_shareholder_id=bolag.id,
                share_number_from=1,
                share_number_to=10,
                number_of_shares=10,
            ),
            registered_by="styrelse@example.com",
        )

    assert REGISTRY.get_sample_value("aktiebok_share_transactions_total", labels) == before + 1
    assert len(ShareTransactionLedger(db_session).list(TENANT_ID)) == 1
