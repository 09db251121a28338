"""Billing reference resolution cascade."""

import logging
from datetime import date
from decimal import Decimal
from typing import Sequence

from reco_engine.config import ResolverConfig
from reco_engine.dates import parse_date
from reco_engine.matching.tokens import (
    ALL_TEXT_FIELDS,
    extract_tokens,
    find_all_tokens,
    split_reference_tokens,
)
from reco_engine.models.billing import BillingRecord
from reco_engine.models.enums import MatchStep, TokenKind
from reco_engine.models.results import ExtractedTokens, ReferenceLinks, ResolutionResult
from reco_engine.models.transaction import Transaction
from reco_engine.store.snapshot import BillingSnapshot

logger = logging.getLogger(__name__)

UNKNOWN = Decimal("Infinity")


def _amount_distance(amount: Decimal | None, target: Decimal | None) -> Decimal:
    if amount is None or target is None:
        return UNKNOWN
    return abs(amount - target)


def _date_distance(record_date: date | None, transaction_date: date | None) -> int | float:
    if record_date is None or transaction_date is None:
        return float("inf")
    return abs((record_date - transaction_date).days)


def transaction_date(transaction: Transaction) -> date | None:
    """Operation date when known, else value date."""
    return parse_date(transaction.operation_date) or parse_date(transaction.value_date)


def link_references(tokens: ExtractedTokens, record: BillingRecord) -> ReferenceLinks:
    """Compute the references to write back for a resolved record.

    Extracted tokens take precedence over the values found on the record.
    """
    return ReferenceLinks(
        invoice_id=record.invoice_id or tokens.invoice,
        payment_reference_id=tokens.payment_reference or record.payment_reference_id,
        guarantee_id=tokens.guarantee or record.business_case_reference or record.business_case_id,
    )


class ReferenceResolver:
    """Resolve ledger transactions to at most one billing record.

    The cascade stops at the first step producing a candidate:

    1. invoice token against invoice ids
    2. payment reference token against payment reference ids
    3. reconciliation numbers against sender references
    4. guarantee token against business cases in the ready status
    5. suggestion pass over every text field

    Parameters
    ----------
    snapshot : BillingSnapshot
        Billing records of the current batch.
    config : ResolverConfig | None
        Amount tolerance and ready status.
    """

    def __init__(self, snapshot: BillingSnapshot, config: ResolverConfig | None = None) -> None:
        self.snapshot = snapshot
        self.config = config or ResolverConfig()

    def resolve(
        self,
        transaction: Transaction,
        tokens: ExtractedTokens | None = None,
    ) -> ResolutionResult | None:
        """Run the cascade for one transaction.

        Parameters
        ----------
        transaction : Transaction
            Ledger line to resolve.
        tokens : ExtractedTokens | None
            Pre-extracted tokens; extracted from the transaction when omitted.

        Returns
        -------
        ResolutionResult | None
            Chosen record and the step that found it, or None.
        """
        if tokens is None:
            tokens = extract_tokens(transaction)
        amount = transaction.signed_amount

        if tokens.invoice:
            candidates = self.snapshot.by_invoice_id(tokens.invoice)
            if candidates:
                return ResolutionResult(
                    self.rank_by_amount(candidates, amount), MatchStep.INVOICE_ID, tokens, len(candidates)
                )

        if tokens.payment_reference:
            candidates = self.snapshot.by_payment_reference(tokens.payment_reference)
            if candidates:
                return ResolutionResult(
                    self.rank_by_amount(candidates, amount),
                    MatchStep.PAYMENT_REFERENCE,
                    tokens,
                    len(candidates),
                )

        references = split_reference_tokens(
            transaction.reconciliation_num, transaction.reconciliation_origin_num
        )
        candidates = self.snapshot.by_sender_reference(references)
        if candidates:
            best = self.rank_by_proximity([(c, True) for c in candidates], transaction)
            return ResolutionResult(best, MatchStep.SENDER_REFERENCE, tokens, len(candidates))

        if tokens.guarantee:
            matches = self.snapshot.by_business_case(tokens.guarantee, self.config.ready_status)
            if matches:
                best = self.rank_by_proximity(matches, transaction)
                return ResolutionResult(best, MatchStep.BUSINESS_CASE, tokens, len(matches))

        return self.suggest(transaction, tokens)

    def suggest(self, transaction: Transaction, tokens: ExtractedTokens) -> ResolutionResult | None:
        """Best-effort suggestion using every token found in any text field.

        Candidates from invoice ids, payment references and ready business
        cases are merged and ranked together by match type, date and amount.
        """
        texts = [getattr(transaction, name) for name in ALL_TEXT_FIELDS]
        merged: list[tuple[BillingRecord, bool]] = []
        seen: set[int] = set()

        def _add(record: BillingRecord, exact: bool) -> None:
            if id(record) not in seen:
                seen.add(id(record))
                merged.append((record, exact))

        for text in texts:
            for token in find_all_tokens(TokenKind.INVOICE, text):
                for record in self.snapshot.by_invoice_id(token):
                    _add(record, True)
            for token in find_all_tokens(TokenKind.PAYMENT_REFERENCE, text):
                for record in self.snapshot.by_payment_reference(token):
                    _add(record, True)
            for token in find_all_tokens(TokenKind.GUARANTEE, text):
                for record, exact in self.snapshot.by_business_case(token, self.config.ready_status):
                    _add(record, exact)

        if not merged:
            logger.debug("No billing record for transaction %s", transaction.transaction_id)
            return None

        best = self.rank_by_proximity(merged, transaction)
        logger.debug(
            "Suggested %s for transaction %s (%d candidates)",
            best.invoice_id,
            transaction.transaction_id,
            len(merged),
        )
        return ResolutionResult(best, MatchStep.SUGGESTION, tokens, len(merged))

    def rank_by_amount(self, candidates: Sequence[BillingRecord], amount: Decimal | None) -> BillingRecord:
        """Pick among records sharing an id, preferring amount matches.

        A single candidate is returned unconditionally. Otherwise records
        are ordered by requested amount within tolerance, billing amount
        within tolerance, closest requested amount, closest billing amount.
        Ties keep snapshot order.
        """
        if len(candidates) == 1:
            return candidates[0]
        tolerance = self.config.amount_tolerance

        def _key(record: BillingRecord) -> tuple[bool, bool, Decimal, Decimal]:
            requested = _amount_distance(record.requested_amount, amount)
            billing = _amount_distance(record.billing_amount, amount)
            return (requested > tolerance, billing > tolerance, requested, billing)

        return min(candidates, key=_key)

    def rank_by_proximity(
        self,
        candidates: Sequence[tuple[BillingRecord, bool]],
        transaction: Transaction,
    ) -> BillingRecord:
        """Pick the best ``(record, exact)`` pair.

        Exact matches beat contains-matches, then the closest date, then the
        smallest distance to either the requested or the billing amount.
        Unknown dates and amounts rank last.
        """
        tx_date = transaction_date(transaction)
        amount = transaction.signed_amount

        def _key(item: tuple[BillingRecord, bool]) -> tuple[bool, int | float, Decimal]:
            record, exact = item
            amount_distance = min(
                _amount_distance(record.requested_amount, amount),
                _amount_distance(record.billing_amount, amount),
            )
            return (not exact, _date_distance(record.reference_date, tx_date), amount_distance)

        return min(candidates, key=_key)[0]
