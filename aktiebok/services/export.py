"""Share register export in the Swedish aktiebok layout."""
from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from aktiebok.models import IssuanceKind, ShareTransaction, ShareTransactionType
from aktiebok.services.cap_table import CapTableSummary

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"

TITLE = "AKTIEBOK - ÄGARFÖRTECKNING"
HISTORY_TITLE = "TRANSAKTIONSHISTORIK"
OWNER_HEADER = ("Aktieägare", "Antal aktier", "Ägarandel (%)", "Röstandel (%)", "Aktieslag")
HISTORY_HEADER = (
    "Datum",
    "Typ",
    "Beskrivning",
    "Aktieslag",
    "Antal",
    "Från aktienr",
    "Till aktienr",
    "Pris/aktie",
    "Totalt belopp",
)

_TYPE_LABELS = {
    ShareTransactionType.ISSUANCE: "Emission",
    ShareTransactionType.TRANSFER: "Överlåtelse",
    ShareTransactionType.SPLIT: "Split",
    ShareTransactionType.REDEMPTION: "Inlösen",
}
_ISSUANCE_LABELS = {
    IssuanceKind.FOUNDING: "Bildande",
    IssuanceKind.NEW_ISSUE: "Nyemission",
    IssuanceKind.BONUS_ISSUE: "Fondemission",
}
_CENTS = Decimal("0.01")
_PRICE_SCALE = Decimal("0.0001")


def round_half_up(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


def transaction_label(entry: ShareTransaction) -> str:
    if entry.type is ShareTransactionType.ISSUANCE and entry.issuance_kind is not None:
        return _ISSUANCE_LABELS[entry.issuance_kind]
    return _TYPE_LABELS[entry.type]


def _optional_amount(value: Decimal | None) -> str:
    return "" if value is None else str(round_half_up(value))


def format_price(value: Decimal | None) -> str:
    """Price per share with two decimals, or up to four when the price needs them."""

    if value is None:
        return ""
    precise = Decimal(value).quantize(_PRICE_SCALE, rounding=ROUND_HALF_UP)
    rounded = round_half_up(precise)
    return str(rounded if rounded == precise else precise)


def render_csv(
    cap_table: CapTableSummary,
    transactions: Sequence[ShareTransaction],
    *,
    delimiter: str = ",",
) -> str:
    """Render the owner list and the transaction history as delimited text.

    Percentages and amounts are rounded half-up to two decimals, prices per share
    keep up to four; rows follow the order of ``cap_table`` and ``transactions``.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")

    writer.writerow([TITLE])
    writer.writerow([])
    writer.writerow(OWNER_HEADER)
    for holder in cap_table.shareholders:
        class_summary = "; ".join(
            f"{share_class.value}: {count}" for share_class, count in holder.shares_by_class.items()
        )
        writer.writerow(
            [
                holder.name,
                holder.total_shares,
                round_half_up(holder.ownership_percentage),
                round_half_up(holder.voting_percentage),
                class_summary,
            ]
        )

    writer.writerow([])
    writer.writerow(["Totalt antal aktier", cap_table.total_shares])
    writer.writerow(["Totalt aktiekapital", round_half_up(cap_table.total_share_capital)])

    writer.writerow([])
    writer.writerow([HISTORY_TITLE])
    writer.writerow([])
    writer.writerow(HISTORY_HEADER)
    for entry in transactions:
        writer.writerow(
            [
                entry.date.isoformat(),
                transaction_label(entry),
                entry.description,
                entry.share_class.value,
                entry.number_of_shares,
                entry.share_number_from,
                entry.share_number_to,
                format_price(entry.price_per_share),
                _optional_amount(entry.total_amount),
            ]
        )

    return buffer.getvalue()


def export_filename(tenant_id: str) -> str:
    return f"aktiebok-{tenant_id}.csv"


__all__ = [
    "CSV_MEDIA_TYPE",
    "HISTORY_HEADER",
    "OWNER_HEADER",
    "export_filename",
    "format_price",
    "render_csv",
    "round_half_up",
    "transaction_label",
]
