"""Tests for domain models."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from reco_engine.models import (
    AccountSide,
    BillingRecord,
    GroupingKpi,
    RuleScope,
    Transaction,
    TransactionType,
    TriggerContext,
)
from reco_engine.models.billing import parse_amount


class TestEnums:
    """Tests for enum helpers."""

    def test_opposite_side(self) -> None:
        assert AccountSide.PIVOT.opposite is AccountSide.RECEIVABLE
        assert AccountSide.RECEIVABLE.opposite is AccountSide.PIVOT

    def test_scope_includes(self) -> None:
        assert RuleScope.BOTH.includes(TriggerContext.EDIT)
        assert RuleScope.IMPORT.includes(TriggerContext.IMPORT)
        assert not RuleScope.IMPORT.includes(TriggerContext.EDIT)


class TestParseAmount:
    """Tests for tolerant amount parsing."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1500", Decimal("1500")),
            ("1 500,50", Decimal("1500.50")),
            ("1\u00a0500,50", Decimal("1500.50")),
            ("1,500.50", Decimal("1500.50")),
            ("-42.1", Decimal("-42.1")),
            (12, Decimal("12")),
            (1.5, Decimal("1.5")),
        ],
    )
    def test_valid(self, raw: object, expected: Decimal) -> None:
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", True])
    def test_invalid(self, raw: object) -> None:
        assert parse_amount(raw) is None


class TestBillingRecord:
    """Tests for BillingRecord."""

    def test_from_raw(self) -> None:
        record = BillingRecord.from_raw(
            {
                "invoice_id": " BGI202401A1B2C3D ",
                "requested_amount": "1 500,00",
                "billing_amount": "",
                "start_date": "05-Jan-24",
                "end_date": "not a date",
                "status": "generated",
                "mt_status": "ACKED",
                "comm_id_email": "Y",
            }
        )

        assert record.invoice_id == "BGI202401A1B2C3D"
        assert record.requested_amount == Decimal("1500.00")
        assert record.billing_amount is None
        assert record.start_date == date(2024, 1, 5)
        assert record.end_date == "not a date"
        assert record.normalized_status == "GENERATED"
        assert record.is_mt_acked is True
        assert record.comm_id_email is True
        assert record.payment_reference_id is None

    def test_reference_date_falls_back_to_end_date(self) -> None:
        record = BillingRecord("BGI202401A1B2C3D", start_date=None, end_date="2024-02-01")

        assert record.reference_date == date(2024, 2, 1)

    def test_mt_status_unknown(self) -> None:
        assert BillingRecord("X").is_mt_acked is None
        assert BillingRecord("X", mt_status="PENDING").is_mt_acked is False


class TestTransaction:
    """Tests for Transaction."""

    def test_sign(self, make_transaction) -> None:
        assert make_transaction(amount="0").sign == "C"
        assert make_transaction(amount="-0.01").sign == "D"

    def test_group_key(self, make_transaction) -> None:
        tx = make_transaction()
        assert tx.group_key is None

        tx.workflow.internal_invoice_reference = " inv-001 "
        assert tx.group_key == "INV-001"

        tx.workflow.invoice_id = "bgi202401a1b2c3d"
        assert tx.group_key == "BGI202401A1B2C3D"

    def test_from_raw(self) -> None:
        tx = Transaction.from_raw(
            {
                "transaction_id": "P-1",
                "account_id": "PIVOT-001",
                "side": "p",
                "signed_amount": "1 000,00",
                "operation_date": "05/01/2024",
                "raw_label": "COLLECTION BGI202401A1B2C3D",
                "category": "direct debit",
                "workflow": {"invoice_id": "BGI202401A1B2C3D", "action_date": "2024-01-06T10:00:00"},
            }
        )

        assert tx.side is AccountSide.PIVOT
        assert tx.signed_amount == Decimal("1000.00")
        assert tx.operation_date == date(2024, 1, 5)
        assert tx.category is TransactionType.DIRECT_DEBIT
        assert tx.workflow.invoice_id == "BGI202401A1B2C3D"
        assert tx.workflow.action_date == datetime(2024, 1, 6, 10, 0)
        assert tx.grouping == GroupingKpi()

    def test_from_raw_requires_amount(self) -> None:
        with pytest.raises(ValueError, match="signed_amount"):
            Transaction.from_raw({"transaction_id": "P-1", "account_id": "A", "side": "PIVOT"})

    def test_from_raw_rejects_unknown_side(self) -> None:
        with pytest.raises(ValueError):
            Transaction.from_raw({"transaction_id": "P-1", "account_id": "A", "side": "X", "signed_amount": 1})


class TestGroupingKpi:
    """Tests for GroupingKpi."""

    def test_amount_match_requires_grouping(self) -> None:
        assert not GroupingKpi(is_grouped=False, missing_amount=Decimal("0")).is_amount_match
        assert GroupingKpi(is_grouped=True, missing_amount=Decimal("0.00")).is_amount_match
        assert not GroupingKpi(is_grouped=True, missing_amount=Decimal("0.01")).is_amount_match
