from __future__ import annotations

import csv
import io
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from aktiebok.services.export import HISTORY_HEADER, OWNER_HEADER


@pytest.fixture()
def register(client: TestClient, auth_headers) -> dict[str, str]:
    ids = {}
    for key, name in (("anna", "Anna Lindqvist"), ("bolag", "Norrsken Invest AB")):
        response = client.post("/api/shareholders/", json={"name": name}, headers=auth_headers)
        ids[key] = response.json()["id"]

    transactions = [
        {
            "type": "issuance",
            "issuance_kind": "founding",
            "date": "2024-01-15",
            "description": "Bolagsbildning",
            "to_shareholder_id": ids["anna"],
            "share_class": "A",
            "number_of_shares": 300,
            "share_number_from": 1,
            "share_number_to": 300,
            "price_per_share": "1",
            "total_amount": "300",
        },
        {
            "type": "transfer",
            "date": "2024-04-01",
            "description": "Försäljning",
            "from_shareholder_id": ids["anna"],
            "to_shareholder_id": ids["bolag"],
            "share_class": "A",
            "number_of_shares": 100,
            "share_number_from": 201,
            "share_number_to": 300,
        },
    ]
    for body in transactions:
        response = client.post("/api/shares/transactions", json=body, headers=auth_headers)
        assert response.status_code == 201, response.text
    return ids


def test_cap_table_percentages(client: TestClient, auth_headers, register) -> None:
    cap_table = client.get("/api/shares/cap-table", headers=auth_headers).json()

    assert cap_table["total_shares"] == 300
    anna, bolag = cap_table["shareholders"]
    assert anna["shareholder_id"] == register["anna"]
    assert anna["total_shares"] == 200
    assert round(Decimal(anna["ownership_percentage"]), 2) == Decimal("66.67")
    assert round(Decimal(bolag["voting_percentage"]), 2) == Decimal("33.33")
    total = sum(Decimal(holder["ownership_percentage"]) for holder in cap_table["shareholders"])
    assert abs(total - 100) < Decimal("0.0001")
    (share_class,) = cap_table["share_classes"]
    assert share_class["share_class"] == "A"
    assert Decimal(share_class["percentage_of_total"]) == 100


def test_empty_cap_table(client: TestClient, auth_headers) -> None:
    cap_table = client.get("/api/shares/cap-table", headers=auth_headers).json()

    assert cap_table["total_shares"] == 0
    assert Decimal(cap_table["total_votes"]) == 0
    assert cap_table["shareholders"] == []


def test_csv_export(client: TestClient, auth_headers, register) -> None:
    response = client.get("/api/shares/export", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == 'attachment; filename="aktiebok-tenant-demo.csv"'

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[2] == list(OWNER_HEADER)
    assert rows[3] == ["Anna Lindqvist", "200", "66.67", "66.67", "A: 200"]
    assert rows[4] == ["Norrsken Invest AB", "100", "33.33", "33.33", "A: 100"]
    assert ["Totalt antal aktier", "300"] in rows
    assert ["Totalt aktiekapital", "300.00"] in rows

    history = rows[rows.index(list(HISTORY_HEADER)) + 1 :]
    assert [row[1] for row in history] == ["Överlåtelse", "Bildande"]
    assert history[0][7:] == ["", ""]
    assert history[1][7:] == ["1.00", "300.00"]


def test_json_export(client: TestClient, member_headers, register) -> None:
    response = client.get("/api/shares/export", params={"format": "json"}, headers=member_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["cap_table"]["total_shares"] == 300
    assert [entry["type"] for entry in body["transactions"]] == ["transfer", "issuance"]
