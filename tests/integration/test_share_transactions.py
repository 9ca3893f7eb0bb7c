from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient


def _shareholder(client: TestClient, headers: dict[str, str], name: str, **payload) -> str:
    response = client.post("/api/shareholders/", json={"name": name, **payload}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def _payload(**overrides) -> dict:
    body = {
        "type": "issuance",
        "issuance_kind": "founding",
        "date": "2024-01-15",
        "description": "Bolagsbildning",
        "share_class": "A",
        "number_of_shares": 100,
        "share_number_from": 1,
        "share_number_to": 100,
        "price_per_share": "10",
        "total_amount": "1000",
    }
    body.update(overrides)
    return body


def _post(client: TestClient, headers: dict[str, str], **overrides):
    return client.post("/api/shares/transactions", json=_payload(**overrides), headers=headers)


def _positions(client: TestClient, headers: dict[str, str], **params) -> list[dict]:
    response = client.get("/api/shares", params=params, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture()
def holders(client: TestClient, auth_headers) -> dict[str, str]:
    return {
        "anna": _shareholder(client, auth_headers, "Anna Lindqvist"),
        "bolag": _shareholder(client, auth_headers, "Norrsken Invest AB", type="COMPANY"),
    }


@pytest.fixture()
def founded(client: TestClient, auth_headers, holders) -> dict[str, str]:
    response = _post(client, auth_headers, to_shareholder_id=holders["anna"])
    assert response.status_code == 201, response.text
    return holders


def test_issuance_creates_position_and_ledger_entry(client: TestClient, auth_headers, holders) -> None:
    response = _post(client, auth_headers, to_shareholder_id=holders["anna"])

    assert response.status_code == 201
    created = response.json()
    assert created["type"] == "issuance"
    assert created["number_of_shares"] == 100
    assert created["share_class"] == "A"

    entry = client.get(f"/api/shares/transactions/{created['id']}", headers=auth_headers).json()
    assert entry["issuance_kind"] == "founding"
    assert entry["registered_by"] == "styrelse@example.com"
    assert Decimal(entry["total_amount"]) == Decimal("1000")

    (position,) = _positions(client, auth_headers)
    assert position["shareholder_id"] == holders["anna"]
    assert position["transaction_id"] == created["id"]
    assert position["acquisition_date"] == "2024-01-15"
    assert Decimal(position["acquisition_price"]) == Decimal("10")
    assert position["source_position_id"] is None


def test_partial_transfer_splits_source_position(client: TestClient, auth_headers, founded) -> None:
    (original,) = _positions(client, auth_headers)

    response = _post(
        client,
        auth_headers,
        type="transfer",
        issuance_kind=None,
        date="2024-03-01",
        from_shareholder_id=founded["anna"],
        to_shareholder_id=founded["bolag"],
        number_of_shares=20,
        share_number_from=41,
        share_number_to=60,
        price_per_share="25",
        total_amount="500",
    )
    assert response.status_code == 201, response.text
    transfer_id = response.json()["id"]

    anna = _positions(client, auth_headers, shareholder_id=founded["anna"])
    assert [(p["share_number_from"], p["share_number_to"]) for p in anna] == [(1, 40), (61, 100)]
    for remainder in anna:
        assert remainder["source_position_id"] == original["id"]
        assert remainder["transaction_id"] == transfer_id
        assert remainder["acquisition_date"] == "2024-01-15"

    (received,) = _positions(client, auth_headers, shareholder_id=founded["bolag"])
    assert (received["share_number_from"], received["share_number_to"]) == (41, 60)
    assert received["acquisition_date"] == "2024-03-01"
    assert Decimal(received["acquisition_price"]) == Decimal("25")

    history = _positions(client, auth_headers, shareholder_id=founded["anna"], active_only=False)
    (closed,) = [p for p in history if not p["is_active"]]
    assert closed["id"] == original["id"]
    assert closed["deactivated_by_transaction_id"] == transfer_id


def test_transfer_keeps_total_shares(client: TestClient, auth_headers, founded) -> None:
    for first, last in ((1, 10), (91, 100), (11, 50)):
        response = _post(
            client,
            auth_headers,
            type="transfer",
            issuance_kind=None,
            from_shareholder_id=founded["anna"],
            to_shareholder_id=founded["bolag"],
            number_of_shares=last - first + 1,
            share_number_from=first,
            share_number_to=last,
        )
        assert response.status_code == 201, response.text

    cap_table = client.get("/api/shares/cap-table", headers=auth_headers).json()
    assert cap_table["total_shares"] == 100
    shares = {holder["shareholder_id"]: holder["total_shares"] for holder in cap_table["shareholders"]}
    assert shares == {founded["anna"]: 40, founded["bolag"]: 60}
    assert sum(p["number_of_shares"] for p in _positions(client, auth_headers)) == 100


def test_redemption_retires_shares_and_holder(client: TestClient, auth_headers, founded) -> None:
    response = _post(
        client,
        auth_headers,
        type="redemption",
        issuance_kind=None,
        from_shareholder_id=founded["anna"],
        to_shareholder_id=founded["anna"],
    )
    assert response.status_code == 201, response.text

    assert _positions(client, auth_headers) == []
    cap_table = client.get("/api/shares/cap-table", headers=auth_headers).json()
    assert cap_table["total_shares"] == 0
    assert cap_table["shareholders"] == []
    detail = client.get(f"/api/shareholders/{founded['anna']}", headers=auth_headers).json()
    assert detail["is_active"] is False


def test_new_issue_of_weighted_class(client: TestClient, auth_headers, founded) -> None:
    response = _post(
        client,
        auth_headers,
        issuance_kind="new_issue",
        to_shareholder_id=founded["bolag"],
        share_class="B",
        number_of_shares=100,
        share_number_from=1,
        share_number_to=100,
        votes_per_share="0.1",
        nominal_value="0.5",
    )
    assert response.status_code == 201, response.text

    cap_table = client.get("/api/shares/cap-table", headers=auth_headers).json()
    assert Decimal(cap_table["total_votes"]) == Decimal("110")
    assert Decimal(cap_table["total_share_capital"]) == Decimal("150")
    (anna, bolag) = sorted(cap_table["shareholders"], key=lambda holder: holder["name"])
    assert Decimal(anna["ownership_percentage"]) == Decimal(50)
    assert round(Decimal(anna["voting_percentage"]), 2) == Decimal("90.91")
    assert bolag["shares_by_class"] == {"B": 100}
    assert [c["share_class"] for c in cap_table["share_classes"]] == ["A", "B"]


@pytest.mark.parametrize(
    ("overrides", "status_code"),
    [
        ({"to_shareholder_id": "missing"}, 404),
        ({"number_of_shares": 99}, 400),
        ({"share_number_from": 50, "share_number_to": 10, "number_of_shares": 1}, 400),
        ({"share_number_from": 90, "share_number_to": 110, "number_of_shares": 21}, 400),
        ({"type": "split", "issuance_kind": "bonus_issue"}, 400),
        ({"type": "transfer", "issuance_kind": None}, 400),
        ({"number_of_shares": 0}, 422),
        ({"type": "merger"}, 422),
        ({"price_per_share": "-1"}, 422),
    ],
)
def test_rejected_transactions(client: TestClient, auth_headers, founded, overrides, status_code) -> None:
    overrides.setdefault("to_shareholder_id", founded["bolag"])
    overrides.setdefault("share_number_from", 101)
    overrides.setdefault("share_number_to", 200)

    response = _post(client, auth_headers, **overrides)

    assert response.status_code == status_code, response.text
    listing = client.get("/api/shares/transactions", headers=auth_headers).json()
    assert listing["total"] == 1


def test_transfer_errors(client: TestClient, auth_headers, founded) -> None:
    base = {
        "type": "transfer",
        "issuance_kind": None,
        "to_shareholder_id": founded["bolag"],
        "number_of_shares": 10,
        "share_number_from": 1,
        "share_number_to": 10,
    }

    unknown = _post(client, auth_headers, **base, from_shareholder_id="missing")
    assert unknown.status_code == 404
    assert unknown.json()["detail"] == "Source shareholder not found"

    wrong_holder = _post(client, auth_headers, **{**base, "from_shareholder_id": founded["bolag"], "to_shareholder_id": founded["anna"]})
    assert wrong_holder.status_code == 400

    to_self = _post(client, auth_headers, **{**base, "from_shareholder_id": founded["anna"], "to_shareholder_id": founded["anna"]})
    assert to_self.status_code == 400


def test_transactions_listed_newest_first(client: TestClient, auth_headers, founded) -> None:
    _post(
        client,
        auth_headers,
        type="transfer",
        issuance_kind=None,
        date="2024-06-01",
        from_shareholder_id=founded["anna"],
        to_shareholder_id=founded["bolag"],
        number_of_shares=10,
        share_number_from=1,
        share_number_to=10,
    )

    listing = client.get("/api/shares/transactions", headers=auth_headers).json()

    assert listing["total"] == 2
    assert [entry["date"] for entry in listing["transactions"]] == ["2024-06-01", "2024-01-15"]
    assert client.get("/api/shares/transactions/missing", headers=auth_headers).status_code == 404


def test_member_can_read_but_not_register(client: TestClient, member_headers, founded) -> None:
    response = _post(
        client, member_headers, to_shareholder_id=founded["bolag"], share_number_from=101, share_number_to=200
    )

    assert response.status_code == 403
    assert client.get("/api/shares/cap-table", headers=member_headers).status_code == 200
    assert client.get("/api/shares/verify", headers=member_headers).status_code == 403


def test_verify_reports_consistent_projection(client: TestClient, admin_headers, founded) -> None:
    _post(
        client,
        admin_headers,
        type="transfer",
        issuance_kind=None,
        from_shareholder_id=founded["anna"],
        to_shareholder_id=founded["bolag"],
        number_of_shares=30,
        share_number_from=31,
        share_number_to=60,
    )

    report = client.get("/api/shares/verify", headers=admin_headers).json()

    assert report == {
        "consistent": True,
        "missing": [],
        "unexpected": [],
        "unapplied_transaction_ids": [],
    }


@pytest.mark.parametrize(
    "overrides",
    [
        {"votes_per_share": "0.12345"},
        {"nominal_value": "0.00001"},
        {"price_per_share": "1.00005"},
        {"total_amount": "100.005"},
        {"votes_per_share": "12345678.5"},
    ],
)
def test_amounts_beyond_stored_precision_are_rejected(
    client: TestClient, auth_headers, founded, overrides
) -> None:
    response = _post(
        client,
        auth_headers,
        to_shareholder_id=founded["bolag"],
        share_class="B",
        share_number_from=1,
        share_number_to=100,
        **overrides,
    )

    assert response.status_code == 422, response.text
    assert client.get("/api/shares/transactions", headers=auth_headers).json()["total"] == 1


def test_class_multiplier_at_full_precision_can_be_reused(client: TestClient, auth_headers, founded) -> None:
    for first, last in ((1, 100), (101, 200)):
        response = _post(
            client,
            auth_headers,
            issuance_kind="new_issue",
            to_shareholder_id=founded["bolag"],
            share_class="B",
            number_of_shares=100,
            share_number_from=first,
            share_number_to=last,
            votes_per_share="0.1235",
            price_per_share="0.0125",
            total_amount="1.25",
        )
        assert response.status_code == 201, response.text

    (share_class,) = [
        item
        for item in client.get("/api/shares/cap-table", headers=auth_headers).json()["share_classes"]
        if item["share_class"] == "B"
    ]
    assert Decimal(share_class["votes_per_share"]) == Decimal("0.1235")
    assert Decimal(share_class["total_votes"]) == Decimal("24.70")


def test_split_allots_new_shares(client: TestClient, auth_headers, founded) -> None:
    response = _post(
        client,
        auth_headers,
        type="split",
        issuance_kind=None,
        date="2024-09-01",
        description="Split 1:2",
        to_shareholder_id=founded["anna"],
        number_of_shares=100,
        share_number_from=101,
        share_number_to=200,
        price_per_share=None,
        total_amount=None,
    )
    assert response.status_code == 201, response.text
    split_id = response.json()["id"]

    positions = _positions(client, auth_headers, shareholder_id=founded["anna"])
    assert [(p["share_number_from"], p["share_number_to"]) for p in positions] == [(1, 100), (101, 200)]
    assert positions[1]["transaction_id"] == split_id
    assert positions[1]["acquisition_date"] == "2024-09-01"

    cap_table = client.get("/api/shares/cap-table", headers=auth_headers).json()
    assert cap_table["total_shares"] == 200
    assert Decimal(cap_table["total_votes"]) == Decimal("200")
    report = client.get("/api/shares/verify", headers=auth_headers).json()
    assert report["consistent"] is True
