"""Pytest configuration and fixtures."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable

import pytest

from reco_engine.models import AccountSide, BillingRecord, Transaction
from reco_engine.store import LedgerStore

PIVOT_ACCOUNT = "PIVOT-001"
RECEIVABLE_ACCOUNT = "RECV-001"


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def now() -> datetime:
    """Fixed "now" for workflow timestamps."""
    return datetime(2024, 3, 15, 9, 30)


@pytest.fixture
def today(now: datetime) -> date:
    return now.date()


@pytest.fixture
def clock(now: datetime) -> Callable[[], datetime]:
    """Clock returning the fixed "now"."""
    return lambda: now


@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    """Factory for ledger lines with sensible defaults."""
    counter = {"n": 0}

    def _make(side: AccountSide = AccountSide.PIVOT, amount: str = "100.00", **kwargs: Any) -> Transaction:
        counter["n"] += 1
        defaults: dict[str, Any] = {
            "transaction_id": f"tx-{counter['n']:03d}",
            "account_id": PIVOT_ACCOUNT if side is AccountSide.PIVOT else RECEIVABLE_ACCOUNT,
            "side": side,
            "signed_amount": Decimal(amount),
            "operation_date": date(2024, 3, 10),
            "event_num": f"EV{counter['n']:05d}",
            "country": "FR",
        }
        defaults.update(kwargs)
        return Transaction(**defaults)

    return _make


@pytest.fixture
def make_record() -> Callable[..., BillingRecord]:
    """Factory for billing records."""

    def _make(invoice_id: str = "BGI202401A1B2C3D", **kwargs: Any) -> BillingRecord:
        defaults: dict[str, Any] = {
            "invoice_id": invoice_id,
            "requested_amount": Decimal("100.00"),
            "billing_amount": Decimal("100.00"),
            "start_date": date(2024, 3, 1),
            "status": "GENERATED",
        }
        defaults.update(kwargs)
        return BillingRecord(**defaults)

    return _make


@pytest.fixture
def store() -> LedgerStore:
    """Ledger store with one pivot and one receivable account."""
    ledger = LedgerStore()
    ledger.add_account(PIVOT_ACCOUNT, AccountSide.PIVOT)
    ledger.add_account(RECEIVABLE_ACCOUNT, AccountSide.RECEIVABLE)
    return ledger
