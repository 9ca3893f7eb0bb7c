"""Cap table computation over active share positions."""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from aktiebok.models import ShareClass
from aktiebok.obs.metrics import CAP_TABLE_COMPUTE_SECONDS
from aktiebok.obs.tracing import register_span

UNKNOWN_SHAREHOLDER = "Unknown"
_HUNDRED = Decimal(100)
_ZERO = Decimal(0)


class ActivePosition(Protocol):
    shareholder_id: str
    share_class: ShareClass
    number_of_shares: int
    nominal_value: Decimal
    votes_per_share: Decimal


@dataclass(frozen=True, slots=True)
class ShareholderSummary:
    shareholder_id: str
    name: str
    total_shares: int
    total_votes: Decimal
    ownership_percentage: Decimal
    voting_percentage: Decimal
    shares_by_class: dict[ShareClass, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ShareClassSummary:
    share_class: ShareClass
    total_shares: int
    votes_per_share: Decimal
    total_votes: Decimal
    percentage_of_total: Decimal


@dataclass(frozen=True, slots=True)
class CapTableSummary:
    total_shares: int
    total_votes: Decimal
    total_share_capital: Decimal
    shareholders: tuple[ShareholderSummary, ...]
    share_classes: tuple[ShareClassSummary, ...]


def _percentage(part: Decimal | int, total: Decimal | int) -> Decimal:
    if not total:
        return _ZERO
    return Decimal(part) * _HUNDRED / Decimal(total)


def compute_cap_table(
    positions: Iterable[ActivePosition], shareholder_names: Mapping[str, str]
) -> CapTableSummary:
    """Aggregate active positions into ownership and voting percentages.

    The result depends only on the input: shareholders are ordered by total
    shares descending then id, classes by label, and percentages are left
    unrounded. Shareholders missing from ``shareholder_names`` are reported as
    ``"Unknown"``.
    """

    with CAP_TABLE_COMPUTE_SECONDS.time(), register_span("cap_table.compute") as span:
        holder_shares: dict[str, int] = defaultdict(int)
        holder_votes: dict[str, Decimal] = defaultdict(Decimal)
        holder_classes: dict[str, dict[ShareClass, int]] = defaultdict(lambda: defaultdict(int))
        class_shares: dict[ShareClass, int] = defaultdict(int)
        class_votes: dict[ShareClass, Decimal] = defaultdict(Decimal)
        class_multiplier: dict[ShareClass, Decimal] = {}
        total_capital = _ZERO

        for position in positions:
            count = position.number_of_shares
            votes = Decimal(count) * Decimal(position.votes_per_share)
            holder_shares[position.shareholder_id] += count
            holder_votes[position.shareholder_id] += votes
            holder_classes[position.shareholder_id][position.share_class] += count
            class_shares[position.share_class] += count
            class_votes[position.share_class] += votes
            class_multiplier.setdefault(position.share_class, Decimal(position.votes_per_share))
            total_capital += Decimal(count) * Decimal(position.nominal_value)

        total_shares = sum(class_shares.values())
        total_votes = sum(class_votes.values(), _ZERO)

        shareholders = tuple(
            ShareholderSummary(
                shareholder_id=shareholder_id,
                name=shareholder_names.get(shareholder_id, UNKNOWN_SHAREHOLDER),
                total_shares=shares,
                total_votes=holder_votes[shareholder_id],
                ownership_percentage=_percentage(shares, total_shares),
                voting_percentage=_percentage(holder_votes[shareholder_id], total_votes),
                shares_by_class=dict(
                    sorted(holder_classes[shareholder_id].items(), key=lambda item: item[0].value)
                ),
            )
            for shareholder_id, shares in sorted(
                holder_shares.items(), key=lambda item: (-item[1], item[0])
            )
            if shares > 0
        )
        share_classes = tuple(
            ShareClassSummary(
                share_class=share_class,
                total_shares=class_shares[share_class],
                votes_per_share=class_multiplier[share_class],
                total_votes=class_votes[share_class],
                percentage_of_total=_percentage(class_shares[share_class], total_shares),
            )
            for share_class in sorted(class_shares, key=lambda item: item.value)
        )

        span.set_attribute("cap_table.shareholders", len(shareholders))
        span.set_attribute("cap_table.total_shares", total_shares)

    return CapTableSummary(
        total_shares=total_shares,
        total_votes=total_votes,
        total_share_capital=total_capital,
        shareholders=shareholders,
        share_classes=share_classes,
    )


__all__ = [
    "ActivePosition",
    "CapTableSummary",
    "ShareClassSummary",
    "ShareholderSummary",
    "UNKNOWN_SHAREHOLDER",
    "compute_cap_table",
]
