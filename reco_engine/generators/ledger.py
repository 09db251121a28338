"""Ledger line generators and the daily-import scenario."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from reco_engine.generators.base import BaseGenerator
from reco_engine.generators.billing import BillingRecordGenerator
from reco_engine.models.billing import BillingRecord
from reco_engine.models.enums import AccountSide, TransactionType
from reco_engine.models.transaction import Transaction
from reco_engine.store.ledger import LedgerStore

logger = logging.getLogger(__name__)

PIVOT_ACCOUNT = "PIVOT-512000"
RECEIVABLE_ACCOUNT = "RECV-411000"


class LedgerLineGenerator(BaseGenerator):
    """Generate ledger lines that cite billing references in their text fields."""

    PIVOT_LABELS = {
        TransactionType.COLLECTION: "COLLECTION {ref} {name}",
        TransactionType.PAYMENT: "PAYMENT {ref} {name}",
        TransactionType.ADJUSTMENT: "ADJUSTMENT {ref}",
    }

    def __init__(self, seed: int | None = None, locale: str = "fr_FR") -> None:
        super().__init__(seed, locale)
        self._sequence = 0

    def _next_id(self, prefix: str) -> str:
        self._sequence += 1
        return f"{prefix}-{self._sequence:08d}"

    def pivot(
        self,
        record: BillingRecord,
        amount: Decimal,
        operation_date: date,
        category: TransactionType = TransactionType.COLLECTION,
    ) -> Transaction:
        """Cash-side line; the invoice id sits in the free-text label."""
        label = self.PIVOT_LABELS.get(category, "{ref}").format(
            ref=record.invoice_id, name=self.fake.company().upper()
        )
        return Transaction(
            transaction_id=self._next_id("P"),
            account_id=PIVOT_ACCOUNT,
            side=AccountSide.PIVOT,
            signed_amount=amount,
            operation_date=operation_date,
            value_date=operation_date + timedelta(days=1),
            event_num=self.digits(10),
            reconciliation_num=record.payment_reference_id,
            raw_label=label,
            currency="EUR",
            country="FR",
            category=category,
        )

    def receivable(self, record: BillingRecord, amount: Decimal, operation_date: date) -> Transaction:
        """Receivable-side line; the invoice id sits in the invoice column."""
        return Transaction(
            transaction_id=self._next_id("R"),
            account_id=RECEIVABLE_ACCOUNT,
            side=AccountSide.RECEIVABLE,
            signed_amount=amount,
            operation_date=operation_date,
            event_num=self.digits(10),
            reconciliation_num=record.business_case_reference,
            raw_label=f"FACTURE {self.fake.company().upper()}",
            currency="EUR",
            country="FR",
            invoice_hint=record.invoice_id,
        )

    def unmatched_pivot(self, operation_date: date) -> Transaction:
        """Cash-side line that cites no billing reference."""
        amount = Decimal(str(round(self.random.uniform(10, 5000), 2)))
        return Transaction(
            transaction_id=self._next_id("P"),
            account_id=PIVOT_ACCOUNT,
            side=AccountSide.PIVOT,
            signed_amount=amount,
            operation_date=operation_date,
            event_num=self.digits(10),
            raw_label=f"VIREMENT {self.fake.name().upper()}",
            currency="EUR",
            country="FR",
        )


@dataclass
class ScenarioData:
    """Generated inputs for one import run."""

    billing: list[BillingRecord] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)

    def new_store(self) -> LedgerStore:
        """Empty ledger store with the scenario's two accounts declared."""
        store = LedgerStore()
        store.add_account(PIVOT_ACCOUNT, AccountSide.PIVOT)
        store.add_account(RECEIVABLE_ACCOUNT, AccountSide.RECEIVABLE)
        return store


class DailyImportScenario:
    """Generate a billing snapshot and a matching ledger extract.

    Each invoice gets a receivable debit and, depending on the draw, a
    pivot credit settling it in full, a partial credit, or nothing yet.
    Unreferenced pivot lines are mixed in to exercise the fallback path.

    Parameters
    ----------
    num_invoices : int
        Number of billing records to generate.
    settled_rate : float
        Share of invoices with a full pivot settlement.
    partial_rate : float
        Share of invoices with a partial pivot settlement.
    unmatched_lines : int
        Number of pivot lines citing no reference.
    seed : int | None
        Random seed for reproducibility.
    """

    def __init__(
        self,
        num_invoices: int = 100,
        settled_rate: float = 0.6,
        partial_rate: float = 0.2,
        unmatched_lines: int = 10,
        seed: int | None = None,
        today: date | None = None,
    ) -> None:
        self.num_invoices = num_invoices
        self.settled_rate = settled_rate
        self.partial_rate = partial_rate
        self.unmatched_lines = unmatched_lines
        self.today = today or date.today()
        self._billing_gen = BillingRecordGenerator(seed=seed)
        self._line_gen = LedgerLineGenerator(seed=seed)

    def generate(self) -> ScenarioData:
        """Generate the billing records and ledger lines."""
        data = ScenarioData()
        draw = self._line_gen.random

        for _ in range(self.num_invoices):
            issued = self.today - timedelta(days=draw.randint(5, 90))
            record = self._billing_gen.generate(issued=issued)
            data.billing.append(record)

            amount = record.requested_amount or Decimal("0")
            data.transactions.append(self._line_gen.receivable(record, -amount, issued))

            roll = draw.random()
            paid_on = min(issued + timedelta(days=draw.randint(1, 30)), self.today)
            if roll < self.settled_rate:
                data.transactions.append(self._line_gen.pivot(record, amount, paid_on))
            elif roll < self.settled_rate + self.partial_rate:
                partial = (amount * Decimal(str(round(draw.uniform(0.2, 0.9), 2)))).quantize(Decimal("0.01"))
                data.transactions.append(self._line_gen.pivot(record, partial, paid_on))

        for _ in range(self.unmatched_lines):
            data.transactions.append(
                self._line_gen.unmatched_pivot(self.today - timedelta(days=draw.randint(0, 10)))
            )

        logger.info(
            "Generated scenario: %d billing records, %d ledger lines",
            len(data.billing),
            len(data.transactions),
        )
        return data
