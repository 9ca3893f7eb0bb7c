"""Share position store, position planning and ledger replay.

Positions are a projection of the ledger: every ledger entry produces a
``PositionPlan`` (positions to deactivate, positions to create) through the
pure ``plan_position_changes`` function. The live write path applies the plan
to the database; ``replay_ledger`` applies the same plans in memory so the
projection can be rebuilt and checked against what is stored.
"""
from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from aktiebok.models import SharePosition, ShareClass, ShareTransactionType
from aktiebok.services.errors import ConflictError

logger = logging.getLogger(__name__)


class HoldingLike(Protocol):
    id: str
    shareholder_id: str
    share_class: ShareClass
    share_number_from: int
    share_number_to: int
    nominal_value: Decimal
    votes_per_share: Decimal
    acquisition_date: date
    acquisition_price: Decimal | None


class LedgerEntryLike(Protocol):
    id: str
    type: ShareTransactionType
    date: date
    from_shareholder_id: str | None
    to_shareholder_id: str
    share_class: ShareClass
    share_number_from: int
    share_number_to: int
    price_per_share: Decimal | None
    nominal_value: Decimal
    votes_per_share: Decimal


@dataclass(frozen=True, slots=True)
class PositionDraft:
    """Attributes of a position that is about to be created."""

    shareholder_id: str
    share_class: ShareClass
    share_number_from: int
    share_number_to: int
    nominal_value: Decimal
    votes_per_share: Decimal
    acquisition_date: date
    acquisition_price: Decimal | None
    transaction_id: str
    source_position_id: str | None = None

    @property
    def number_of_shares(self) -> int:
        return self.share_number_to - self.share_number_from + 1


@dataclass(frozen=True, slots=True)
class PositionPlan:
    deactivate: tuple[str, ...] = ()
    create: tuple[PositionDraft, ...] = ()


def plan_position_changes(entry: LedgerEntryLike, source: HoldingLike | None = None) -> PositionPlan:
    """Return the position changes caused by a validated ledger entry.

    Issuances and splits create one fresh position for the recipient. Transfers
    and redemptions consume ``source``, which must cover the entry's range: the
    recipient of a transfer receives the range, and every part of the source
    outside the range goes back to the source holder as a new position.
    """

    if entry.type.creates_shares:
        return PositionPlan(
            create=(
                PositionDraft(
                    shareholder_id=entry.to_shareholder_id,
                    share_class=entry.share_class,
                    share_number_from=entry.share_number_from,
                    share_number_to=entry.share_number_to,
                    nominal_value=entry.nominal_value,
                    votes_per_share=entry.votes_per_share,
                    acquisition_date=entry.date,
                    acquisition_price=entry.price_per_share,
                    transaction_id=entry.id,
                ),
            )
        )

    if source is None:
        raise ValueError(f"{entry.type.value} entries need the source position they consume")
    if not (
        source.share_number_from <= entry.share_number_from
        and entry.share_number_to <= source.share_number_to
    ):
        raise ValueError("source position does not cover the transferred range")

    drafts: list[PositionDraft] = []
    if entry.type is ShareTransactionType.TRANSFER:
        drafts.append(
            PositionDraft(
                shareholder_id=entry.to_shareholder_id,
                share_class=source.share_class,
                share_number_from=entry.share_number_from,
                share_number_to=entry.share_number_to,
                nominal_value=source.nominal_value,
                votes_per_share=source.votes_per_share,
                acquisition_date=entry.date,
                acquisition_price=entry.price_per_share,
                transaction_id=entry.id,
                source_position_id=source.id,
            )
        )

    remainders = (
        (source.share_number_from, entry.share_number_from - 1),
        (entry.share_number_to + 1, source.share_number_to),
    )
    for remainder_from, remainder_to in remainders:
        if remainder_from > remainder_to:
            continue
        drafts.append(
            PositionDraft(
                shareholder_id=source.shareholder_id,
                share_class=source.share_class,
                share_number_from=remainder_from,
                share_number_to=remainder_to,
                nominal_value=source.nominal_value,
                votes_per_share=source.votes_per_share,
                acquisition_date=source.acquisition_date,
                acquisition_price=source.acquisition_price,
                transaction_id=entry.id,
                source_position_id=source.id,
            )
        )

    return PositionPlan(deactivate=(source.id,), create=tuple(drafts))


@dataclass(frozen=True, slots=True)
class ReplayedPosition:
    id: str
    shareholder_id: str
    share_class: ShareClass
    share_number_from: int
    share_number_to: int
    nominal_value: Decimal
    votes_per_share: Decimal
    acquisition_date: date
    acquisition_price: Decimal | None

    @property
    def number_of_shares(self) -> int:
        return self.share_number_to - self.share_number_from + 1


@dataclass(slots=True)
class ReplayResult:
    positions: list[ReplayedPosition]
    unapplied_transaction_ids: list[str] = field(default_factory=list)


def replay_ledger(entries: Iterable[LedgerEntryLike]) -> ReplayResult:
    """Rebuild active holdings from ledger entries given in chronological order."""

    active: dict[str, ReplayedPosition] = {}
    unapplied: list[str] = []
    sequence = 0

    for entry in entries:
        source: ReplayedPosition | None = None
        if entry.type.requires_source:
            source = next(
                (
                    holding
                    for holding in active.values()
                    if holding.shareholder_id == entry.from_shareholder_id
                    and holding.share_class == entry.share_class
                    and holding.share_number_from <= entry.share_number_from
                    and entry.share_number_to <= holding.share_number_to
                ),
                None,
            )
            if source is None:
                unapplied.append(entry.id)
                continue

        plan = plan_position_changes(entry, source)
        for position_id in plan.deactivate:
            active.pop(position_id, None)
        for draft in plan.create:
            sequence += 1
            key = f"replay-{sequence}"
            active[key] = ReplayedPosition(
                id=key,
                shareholder_id=draft.shareholder_id,
                share_class=draft.share_class,
                share_number_from=draft.share_number_from,
                share_number_to=draft.share_number_to,
                nominal_value=draft.nominal_value,
                votes_per_share=draft.votes_per_share,
                acquisition_date=draft.acquisition_date,
                acquisition_price=draft.acquisition_price,
            )

    return ReplayResult(positions=list(active.values()), unapplied_transaction_ids=unapplied)


RangeKey = tuple[str, str, int, int]


def _range_key(holding: HoldingLike | ReplayedPosition) -> RangeKey:
    return (
        holding.shareholder_id,
        holding.share_class.value,
        holding.share_number_from,
        holding.share_number_to,
    )


@dataclass(frozen=True, slots=True)
class ProjectionReport:
    """Difference between stored active positions and a replay of the ledger."""

    missing: tuple[RangeKey, ...]
    unexpected: tuple[RangeKey, ...]
    unapplied_transaction_ids: tuple[str, ...]

    @property
    def consistent(self) -> bool:
        return not (self.missing or self.unexpected or self.unapplied_transaction_ids)


def compare_projection(
    stored: Iterable[HoldingLike], replay: ReplayResult
) -> ProjectionReport:
    expected = Counter(_range_key(holding) for holding in replay.positions)
    actual = Counter(_range_key(holding) for holding in stored)
    return ProjectionReport(
        missing=tuple(sorted((expected - actual).elements())),
        unexpected=tuple(sorted((actual - expected).elements())),
        unapplied_transaction_ids=tuple(replay.unapplied_transaction_ids),
    )


class SharePositionStore:
    """Reads and writes the ``shares`` projection for a session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, *, tenant_id: str, draft: PositionDraft) -> SharePosition:
        position = SharePosition(
            tenant_id=tenant_id,
            shareholder_id=draft.shareholder_id,
            share_class=draft.share_class,
            share_number_from=draft.share_number_from,
            share_number_to=draft.share_number_to,
            number_of_shares=draft.number_of_shares,
            nominal_value=draft.nominal_value,
            votes_per_share=draft.votes_per_share,
            acquisition_date=draft.acquisition_date,
            acquisition_price=draft.acquisition_price,
            transaction_id=draft.transaction_id,
            source_position_id=draft.source_position_id,
            is_active=True,
        )
        self._session.add(position)
        self._session.flush()
        logger.info(
            "share position created",
            extra={
                "tenant_id": tenant_id,
                "position_id": position.id,
                "shareholder_id": draft.shareholder_id,
                "number_of_shares": draft.number_of_shares,
            },
        )
        return position

    def deactivate(
        self,
        position: SharePosition,
        *,
        transaction_id: str,
        now: datetime | None = None,
    ) -> None:
        """Deactivate ``position``, failing if another writer changed it since it was read."""

        position_id = position.id
        tenant_id = position.tenant_id
        if not position.is_active:
            raise ConflictError(f"Share position '{position_id}' is no longer active")

        position.is_active = False
        position.deactivated_by_transaction_id = transaction_id
        position.deactivated_at = now or datetime.now(timezone.utc)
        try:
            self._session.flush()
        except StaleDataError as exc:
            # The session must be rolled back before any attribute is read again.
            raise ConflictError(
                f"Share position '{position_id}' was modified concurrently"
            ) from exc
        logger.info(
            "share position deactivated",
            extra={
                "tenant_id": tenant_id,
                "position_id": position_id,
                "transaction_id": transaction_id,
            },
        )

    def list(self, tenant_id: str) -> Sequence[SharePosition]:
        statement = (
            select(SharePosition)
            .where(SharePosition.tenant_id == tenant_id)
            .order_by(SharePosition.share_class, SharePosition.share_number_from, SharePosition.created_at)
        )
        return self._session.scalars(statement).all()

    def list_active(self, tenant_id: str) -> Sequence[SharePosition]:
        statement = (
            select(SharePosition)
            .where(SharePosition.tenant_id == tenant_id, SharePosition.is_active.is_(True))
            .order_by(SharePosition.share_class, SharePosition.share_number_from)
        )
        return self._session.scalars(statement).all()

    def list_by_shareholder(
        self, tenant_id: str, shareholder_id: str, *, include_inactive: bool = True
    ) -> Sequence[SharePosition]:
        statement = select(SharePosition).where(
            SharePosition.tenant_id == tenant_id,
            SharePosition.shareholder_id == shareholder_id,
        )
        if not include_inactive:
            statement = statement.where(SharePosition.is_active.is_(True))
        statement = statement.order_by(
            SharePosition.share_class, SharePosition.share_number_from, SharePosition.created_at
        )
        return self._session.scalars(statement).all()

    def has_active_positions(self, tenant_id: str, shareholder_id: str) -> bool:
        return bool(self.list_by_shareholder(tenant_id, shareholder_id, include_inactive=False))

    def find_covering(
        self,
        tenant_id: str,
        *,
        shareholder_id: str,
        share_class: ShareClass,
        share_number_from: int,
        share_number_to: int,
    ) -> SharePosition | None:
        statement = select(SharePosition).where(
            SharePosition.tenant_id == tenant_id,
            SharePosition.shareholder_id == shareholder_id,
            SharePosition.share_class == share_class,
            SharePosition.is_active.is_(True),
            SharePosition.share_number_from <= share_number_from,
            SharePosition.share_number_to >= share_number_to,
        )
        return self._session.scalars(statement).first()

    def find_overlapping(
        self,
        tenant_id: str,
        *,
        share_class: ShareClass,
        share_number_from: int,
        share_number_to: int,
    ) -> Sequence[SharePosition]:
        statement = select(SharePosition).where(
            SharePosition.tenant_id == tenant_id,
            SharePosition.share_class == share_class,
            SharePosition.is_active.is_(True),
            SharePosition.share_number_from <= share_number_to,
            SharePosition.share_number_to >= share_number_from,
        )
        return self._session.scalars(statement).all()

    def votes_per_share_for_class(self, tenant_id: str, share_class: ShareClass) -> Decimal | None:
        statement = (
            select(SharePosition.votes_per_share)
            .where(
                SharePosition.tenant_id == tenant_id,
                SharePosition.share_class == share_class,
                SharePosition.is_active.is_(True),
            )
            .limit(1)
        )
        value = self._session.scalars(statement).first()
        return Decimal(value) if value is not None else None

    def verify_projection(self, tenant_id: str, entries: Iterable[LedgerEntryLike]) -> ProjectionReport:
        """Compare stored active positions with a replay of ``entries``."""

        report = compare_projection(self.list_active(tenant_id), replay_ledger(entries))
        if not report.consistent:
            logger.warning(
                "share position projection diverges from ledger",
                extra={
                    "tenant_id": tenant_id,
                    "missing": len(report.missing),
                    "unexpected": len(report.unexpected),
                    "unapplied": len(report.unapplied_transaction_ids),
                },
            )
        return report


__all__ = [
    "HoldingLike",
    "LedgerEntryLike",
    "PositionDraft",
    "PositionPlan",
    "ProjectionReport",
    "ReplayResult",
    "ReplayedPosition",
    "SharePositionStore",
    "compare_projection",
    "plan_position_changes",
    "replay_ledger",
]
