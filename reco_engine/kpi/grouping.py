"""Cross-side grouping and balance KPIs.

Transactions sharing a billing reference (resolved invoice id, else the
internal invoice reference, trimmed and case-insensitive) form a group.
A group is *grouped* when both ledger sides are present. Its imbalance
is ``pivot_total + receivable_total``; pivot members report it as their
missing amount and receivable members report its negation.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from reco_engine.models.enums import AccountSide
from reco_engine.models.transaction import GroupingKpi, Transaction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def group_kpis(members: list[Transaction]) -> list[tuple[Transaction, GroupingKpi]]:
    """KPIs each member of one group should carry."""
    pivots = [m for m in members if m.side is AccountSide.PIVOT]
    receivables = [m for m in members if m.side is AccountSide.RECEIVABLE]

    if not pivots or not receivables:
        return [(member, GroupingKpi()) for member in members]

    pivot_total = sum((m.signed_amount for m in pivots), ZERO)
    receivable_total = sum((m.signed_amount for m in receivables), ZERO)
    imbalance = pivot_total + receivable_total

    kpis = [
        (
            member,
            GroupingKpi(
                is_grouped=True,
                missing_amount=imbalance,
                counterpart_total_amount=receivable_total,
                counterpart_count=len(receivables),
            ),
        )
        for member in pivots
    ]
    kpis.extend(
        (
            member,
            GroupingKpi(
                is_grouped=True,
                missing_amount=ZERO - imbalance,
                counterpart_total_amount=pivot_total,
                counterpart_count=len(pivots),
            ),
        )
        for member in receivables
    )
    return kpis


def _annotate_group(members: list[Transaction]) -> None:
    for member, kpi in group_kpis(members):
        member.grouping = kpi


def group_transactions(transactions: Iterable[Transaction]) -> dict[str, list[Transaction]]:
    """Active transactions bucketed by group key; key-less ones are left out."""
    groups: dict[str, list[Transaction]] = defaultdict(list)
    for transaction in transactions:
        if transaction.deleted_at is not None:
            continue
        key = transaction.group_key
        if key is not None:
            groups[key].append(transaction)
    return dict(groups)


def compute_grouping(transactions: Iterable[Transaction]) -> dict[str, list[Transaction]]:
    """Recompute grouping KPIs for a whole transaction set.

    Parameters
    ----------
    transactions : Iterable[Transaction]
        Every transaction of the dataset; soft-deleted ones are cleared.

    Returns
    -------
    dict[str, list[Transaction]]
        Groups by key, for callers that need the pairing.
    """
    items = list(transactions)
    for transaction in items:
        if transaction.deleted_at is not None or transaction.group_key is None:
            transaction.grouping = GroupingKpi()

    groups = group_transactions(items)
    for members in groups.values():
        _annotate_group(members)

    logger.debug(
        "Grouping computed: %d groups, %d grouped transactions",
        len(groups),
        sum(1 for t in items if t.grouping.is_grouped),
    )
    return groups


def counterparts(transaction: Transaction, groups: dict[str, list[Transaction]]) -> list[Transaction]:
    """Opposite-side members of the transaction's group."""
    key = transaction.group_key
    if key is None:
        return []
    opposite = transaction.side.opposite
    return [m for m in groups.get(key, []) if m.side is opposite and m.deleted_at is None]


class GroupingIndex:
    """Grouping KPIs kept up to date one group at a time.

    Built with a full computation; afterwards ``refresh`` handles a single
    edited transaction by recomputing only the groups it left and joined.

    Parameters
    ----------
    transactions : Iterable[Transaction]
        Initial dataset.
    """

    def __init__(self, transactions: Iterable[Transaction]) -> None:
        self._transactions: dict[str, Transaction] = {}
        self._keys: dict[str, str | None] = {}
        self._groups: dict[str, list[Transaction]] = defaultdict(list)

        items = list(transactions)
        for transaction in items:
            self._track(transaction)
        compute_grouping(items)

    def _track(self, transaction: Transaction) -> None:
        key = None if transaction.deleted_at is not None else transaction.group_key
        self._transactions[transaction.transaction_id] = transaction
        self._keys[transaction.transaction_id] = key
        if key is not None:
            self._groups[key].append(transaction)

    def _untrack(self, transaction_id: str) -> str | None:
        key = self._keys.pop(transaction_id, None)
        self._transactions.pop(transaction_id, None)
        if key is not None:
            members = [m for m in self._groups.get(key, []) if m.transaction_id != transaction_id]
            if members:
                self._groups[key] = members
            else:
                self._groups.pop(key, None)
        return key

    @property
    def groups(self) -> dict[str, list[Transaction]]:
        return {key: list(members) for key, members in self._groups.items()}

    def members(self, key: str) -> list[Transaction]:
        return list(self._groups.get(key.strip().upper(), []))

    def recompute(self, key: str) -> list[Transaction]:
        """Recompute the KPIs of one group and return its members."""
        members = self._groups.get(key.strip().upper(), [])
        if members:
            _annotate_group(members)
        return list(members)

    def refresh(self, transaction: Transaction) -> set[str]:
        """Re-key one transaction and recompute the groups it touches.

        Returns
        -------
        set[str]
            Keys of the recomputed groups.
        """
        old_key = self._untrack(transaction.transaction_id)
        self._track(transaction)
        new_key = self._keys[transaction.transaction_id]

        if new_key is None:
            transaction.grouping = GroupingKpi()

        affected = {k for k in (old_key, new_key) if k is not None}
        for key in affected:
            self.recompute(key)
        return affected

    def preview(self, transaction: Transaction) -> GroupingKpi:
        """KPIs the transaction would carry in its current state.

        Nothing tracked is modified, so an unsaved copy of a tracked
        transaction can be previewed before it is committed.
        """
        key = None if transaction.deleted_at is not None else transaction.group_key
        if key is None:
            return GroupingKpi()
        others = [m for m in self._groups.get(key, []) if m.transaction_id != transaction.transaction_id]
        for member, kpi in group_kpis(others + [transaction]):
            if member is transaction:
                return kpi
        return GroupingKpi()

    def add(self, transaction: Transaction) -> set[str]:
        """Start tracking a new transaction."""
        return self.refresh(transaction)
