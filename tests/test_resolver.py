"""Tests for the billing reference resolution cascade."""

from datetime import date
from decimal import Decimal

from reco_engine.config import ResolverConfig
from reco_engine.matching.resolver import ReferenceResolver, link_references
from reco_engine.models import AccountSide, ExtractedTokens, MatchStep
from reco_engine.store import BillingSnapshot

INVOICE = "BGI202401A1B2C3D"
GUARANTEE = "G1234FR123456789"


class TestInvoiceStep:
    """Direct invoice id matches."""

    def test_single_candidate_ignores_amount(self, make_transaction, make_record) -> None:
        record = make_record(INVOICE, requested_amount=Decimal("1500"), billing_amount=Decimal("1500"))
        resolver = ReferenceResolver(BillingSnapshot([make_record("BGI202402FFFFFFF"), record]))
        tx = make_transaction(amount="1000", raw_label=f"COLLECTION {INVOICE}")

        result = resolver.resolve(tx)

        assert result is not None
        assert result.record is record
        assert result.step is MatchStep.INVOICE_ID
        assert result.candidate_count == 1

    def test_prefers_requested_amount_within_tolerance(self, make_transaction, make_record) -> None:
        first = make_record(INVOICE, requested_amount=Decimal("1500"), billing_amount=None)
        second = make_record(INVOICE, requested_amount=Decimal("1600"), billing_amount=None)
        third = make_record(INVOICE, requested_amount=None, billing_amount=Decimal("1500"))
        resolver = ReferenceResolver(BillingSnapshot([first, second, third]))
        tx = make_transaction(amount="1500", raw_label=INVOICE)

        result = resolver.resolve(tx)

        assert result.record is first
        assert result.candidate_count == 3

    def test_billing_amount_beats_far_requested_amount(self, make_transaction, make_record) -> None:
        far = make_record(INVOICE, requested_amount=Decimal("1600"), billing_amount=Decimal("1600"))
        billed = make_record(INVOICE, requested_amount=Decimal("1700"), billing_amount=Decimal("1500.005"))
        resolver = ReferenceResolver(BillingSnapshot([far, billed]))

        result = resolver.resolve(make_transaction(amount="1500", raw_label=INVOICE))

        assert result.record is billed

    def test_closest_amount_when_nothing_within_tolerance(self, make_transaction, make_record) -> None:
        far = make_record(INVOICE, requested_amount=Decimal("2000"))
        near = make_record(INVOICE, requested_amount=Decimal("1550"))
        resolver = ReferenceResolver(BillingSnapshot([far, near]))

        result = resolver.resolve(make_transaction(amount="1500", raw_label=INVOICE))

        assert result.record is near

    def test_tie_keeps_snapshot_order(self, make_transaction, make_record) -> None:
        first = make_record(INVOICE, payment_reference_id="P1")
        second = make_record(INVOICE, payment_reference_id="P2")
        resolver = ReferenceResolver(BillingSnapshot([first, second]))

        result = resolver.resolve(make_transaction(amount="100.00", raw_label=INVOICE))

        assert result.record is first

    def test_case_insensitive_lookup(self, make_transaction, make_record) -> None:
        record = make_record(INVOICE)
        resolver = ReferenceResolver(BillingSnapshot([record]))

        result = resolver.resolve(make_transaction(raw_label=INVOICE.lower()))

        assert result.record is record


class TestPaymentReferenceStep:
    """Payment reference matches when no invoice token resolves."""

    def test_payment_reference(self, make_transaction, make_record) -> None:
        record = make_record("BGI202402FFFFFFF", payment_reference_id="BGPMTAAAA1111")
        resolver = ReferenceResolver(BillingSnapshot([record]))
        tx = make_transaction(reconciliation_num="BGPMTAAAA1111")

        result = resolver.resolve(tx)

        assert result.record is record
        assert result.step is MatchStep.PAYMENT_REFERENCE

    def test_unknown_invoice_token_falls_through(self, make_transaction, make_record) -> None:
        record = make_record("BGI202402FFFFFFF", payment_reference_id="BGPMTAAAA1111")
        resolver = ReferenceResolver(BillingSnapshot([record]))
        tx = make_transaction(raw_label=INVOICE, reconciliation_num="BGPMTAAAA1111")

        result = resolver.resolve(tx)

        assert result.step is MatchStep.PAYMENT_REFERENCE


class TestSenderReferenceStep:
    """Reconciliation numbers against sender references."""

    def test_sender_reference_by_date(self, make_transaction, make_record) -> None:
        late = make_record("BGI202402FFFFFFF", sender_reference="COMM778", start_date=date(2024, 1, 1))
        close = make_record("BGI202403EEEEEEE", sender_reference="comm778", start_date=date(2024, 3, 8))
        resolver = ReferenceResolver(BillingSnapshot([late, close]))
        tx = make_transaction(reconciliation_num="REF/COMM778")

        result = resolver.resolve(tx)

        assert result.record is close
        assert result.step is MatchStep.SENDER_REFERENCE


class TestBusinessCaseStep:
    """Guarantee token against business cases in the ready status."""

    def test_ready_status_only(self, make_transaction, make_record) -> None:
        five_days = make_record(
            "BGI202403000000A",
            business_case_reference=GUARANTEE,
            requested_amount=Decimal("1500"),
            start_date=date(2024, 3, 5),
        )
        seventeen_days = make_record(
            "BGI202402000000B",
            business_case_reference=GUARANTEE,
            requested_amount=Decimal("1500"),
            start_date=date(2024, 2, 22),
        )
        draft = make_record(
            "BGI202403000000C",
            business_case_reference=GUARANTEE,
            requested_amount=Decimal("1500"),
            start_date=date(2024, 3, 7),
            status="DRAFT",
        )
        resolver = ReferenceResolver(BillingSnapshot([seventeen_days, draft, five_days]))
        tx = make_transaction(AccountSide.RECEIVABLE, amount="1500", raw_label=f"GAR {GUARANTEE}")

        result = resolver.resolve(tx)

        assert result.record is five_days
        assert result.step is MatchStep.BUSINESS_CASE
        assert result.candidate_count == 2

    def test_only_non_ready_match_is_never_returned(self, make_transaction, make_record) -> None:
        draft = make_record("BGI202403000000C", business_case_reference=GUARANTEE, status="DRAFT")
        resolver = ReferenceResolver(BillingSnapshot([draft]))
        tx = make_transaction(AccountSide.RECEIVABLE, raw_label=GUARANTEE)

        assert resolver.resolve(tx) is None

    def test_exact_beats_contains(self, make_transaction, make_record) -> None:
        contains = make_record(
            "BGI202403000000A",
            business_case_reference=f"{GUARANTEE}-A",
            start_date=date(2024, 3, 10),
        )
        exact = make_record("BGI202401000000B", business_case_id=GUARANTEE, start_date=date(2023, 1, 1))
        resolver = ReferenceResolver(BillingSnapshot([contains, exact]))
        tx = make_transaction(AccountSide.RECEIVABLE, raw_label=GUARANTEE)

        assert resolver.resolve(tx).record is exact

    def test_unknown_date_ranks_last(self, make_transaction, make_record) -> None:
        undated = make_record(
            "BGI202403000000A", business_case_reference=GUARANTEE, start_date=None, end_date="unknown"
        )
        dated = make_record("BGI202401000000B", business_case_reference=GUARANTEE, start_date="01-Jan-23")
        resolver = ReferenceResolver(BillingSnapshot([undated, dated]))
        tx = make_transaction(AccountSide.RECEIVABLE, raw_label=GUARANTEE)

        assert resolver.resolve(tx).record is dated

    def test_configured_ready_status(self, make_transaction, make_record) -> None:
        paid = make_record("BGI202403000000A", business_case_reference=GUARANTEE, status="PAID")
        resolver = ReferenceResolver(BillingSnapshot([paid]), ResolverConfig(ready_status="PAID"))
        tx = make_transaction(AccountSide.RECEIVABLE, raw_label=GUARANTEE)

        assert resolver.resolve(tx).record is paid


class TestSuggestionStep:
    """Broadened pass over every text field."""

    def test_suggests_from_secondary_field(self, make_transaction, make_record) -> None:
        record = make_record(INVOICE)
        resolver = ReferenceResolver(BillingSnapshot([record]))
        # Receivable invoice extraction never reads the label.
        tx = make_transaction(AccountSide.RECEIVABLE, raw_label=f"FACTURE {INVOICE}")

        result = resolver.resolve(tx)

        assert result.record is record
        assert result.step is MatchStep.SUGGESTION
        assert result.is_suggestion

    def test_no_match_returns_none(self, make_transaction, make_record) -> None:
        resolver = ReferenceResolver(BillingSnapshot([make_record(INVOICE)]))

        assert resolver.resolve(make_transaction(raw_label="VIREMENT DIVERS")) is None

    def test_empty_snapshot(self, make_transaction) -> None:
        resolver = ReferenceResolver(BillingSnapshot([]))

        assert resolver.resolve(make_transaction(raw_label=INVOICE)) is None


class TestLinkReferences:
    """Back-fill values for a resolved record."""

    def test_tokens_win_for_payment_and_guarantee(self, make_record) -> None:
        record = make_record(
            INVOICE,
            payment_reference_id="BGPMTRECORD01",
            business_case_reference="G9999FR000000000",
        )
        tokens = ExtractedTokens(invoice=INVOICE.lower(), payment_reference="BGPMTTOKEN001", guarantee=GUARANTEE)

        links = link_references(tokens, record)

        assert links.invoice_id == INVOICE
        assert links.payment_reference_id == "BGPMTTOKEN001"
        assert links.guarantee_id == GUARANTEE

    def test_record_values_when_no_tokens(self, make_record) -> None:
        record = make_record(INVOICE, payment_reference_id="BGPMTRECORD01", business_case_id="12345678")

        links = link_references(ExtractedTokens(), record)

        assert links.payment_reference_id == "BGPMTRECORD01"
        assert links.guarantee_id == "12345678"
