"""Immutable, indexed view over the billing records of one batch."""

from collections import defaultdict
from typing import Iterable, Iterator

from reco_engine.models.billing import BillingRecord


def normalize_reference(value: str | None) -> str | None:
    """Trim and uppercase a reference; blank values become None."""
    if value is None:
        return None
    text = value.strip().upper()
    return text or None


class BillingSnapshot:
    """Read-only billing records with lookup indexes.

    The caller loads one consistent snapshot per batch and passes it to
    the resolver. Lookups return records in snapshot order.

    Parameters
    ----------
    records : Iterable[BillingRecord]
        Billing records as loaded from the billing extract.
    """

    def __init__(self, records: Iterable[BillingRecord]) -> None:
        self._records: tuple[BillingRecord, ...] = tuple(records)
        self._by_invoice: dict[str, list[int]] = defaultdict(list)
        self._by_payment_reference: dict[str, list[int]] = defaultdict(list)
        self._by_sender_reference: dict[str, list[int]] = defaultdict(list)
        self._by_status: dict[str, list[int]] = defaultdict(list)

        for pos, record in enumerate(self._records):
            for index, value in (
                (self._by_invoice, record.invoice_id),
                (self._by_payment_reference, record.payment_reference_id),
                (self._by_sender_reference, record.sender_reference),
            ):
                key = normalize_reference(value)
                if key:
                    index[key].append(pos)
            self._by_status[record.normalized_status].append(pos)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[BillingRecord]:
        return iter(self._records)

    def _pick(self, positions: Iterable[int]) -> list[BillingRecord]:
        return [self._records[pos] for pos in sorted(set(positions))]

    def get(self, invoice_id: str | None) -> BillingRecord | None:
        """First record with the given invoice id."""
        matches = self.by_invoice_id(invoice_id)
        return matches[0] if matches else None

    def by_invoice_id(self, invoice_id: str | None) -> list[BillingRecord]:
        key = normalize_reference(invoice_id)
        return self._pick(self._by_invoice.get(key, ())) if key else []

    def by_payment_reference(self, reference: str | None) -> list[BillingRecord]:
        key = normalize_reference(reference)
        return self._pick(self._by_payment_reference.get(key, ())) if key else []

    def by_sender_reference(self, tokens: Iterable[str]) -> list[BillingRecord]:
        """Records whose sender reference equals any of ``tokens``."""
        positions: list[int] = []
        for token in tokens:
            key = normalize_reference(token)
            if key:
                positions.extend(self._by_sender_reference.get(key, ()))
        return self._pick(positions)

    def by_business_case(self, reference: str | None, status: str) -> list[tuple[BillingRecord, bool]]:
        """Records in ``status`` whose business case reference or id matches.

        Parameters
        ----------
        reference : str | None
            Guarantee token to look for.
        status : str
            Only records in this status are considered.

        Returns
        -------
        list[tuple[BillingRecord, bool]]
            ``(record, exact)`` pairs; ``exact`` is False for contains-matches.
        """
        key = normalize_reference(reference)
        if not key:
            return []
        found: list[tuple[BillingRecord, bool]] = []
        for pos in self._by_status.get(status.strip().upper(), ()):
            record = self._records[pos]
            values = [
                normalize_reference(record.business_case_reference),
                normalize_reference(record.business_case_id),
            ]
            if key in values:
                found.append((record, True))
            elif any(v and key in v for v in values):
                found.append((record, False))
        return found
