"""Billing record generator."""

import string
from datetime import date, timedelta
from decimal import Decimal

from reco_engine.generators.base import BaseGenerator
from reco_engine.models.billing import BillingRecord
from reco_engine.models.enums import InvoiceStatus, TransactionType


class BillingRecordGenerator(BaseGenerator):
    """Generate invoices and guarantee payments with well-formed references."""

    COUNTRIES = ["FR", "IT", "BE", "ES", "DE"]
    GUARANTEE_TYPES = ["ISSUANCE", "REISSUANCE", "ADVISING"]
    PAYMENT_METHODS = [
        TransactionType.INCOMING_PAYMENT,
        TransactionType.DIRECT_DEBIT,
        TransactionType.EXTERNAL_DEBIT_PAYMENT,
        TransactionType.OUTGOING_PAYMENT,
    ]
    PAYMENT_WEIGHTS = [0.55, 0.25, 0.10, 0.10]

    def invoice_id(self, issued: date) -> str:
        """``BGI`` + year and month + seven hex digits."""
        return f"BGI{issued:%Y%m}{self.hex_digits(7)}"

    def payment_reference(self) -> str:
        alphabet = string.ascii_uppercase + string.digits
        return "BGPMT" + "".join(self.random.choice(alphabet) for _ in range(12))

    def guarantee_reference(self, country: str) -> str:
        return f"G{self.random.randint(2015, 2030)}{country}{self.digits(9)}"

    def generate(self, issued: date | None = None, amount: Decimal | None = None) -> BillingRecord:
        """Generate a single billing record.

        Parameters
        ----------
        issued : date | None
            Invoice start date; a date within the last 90 days when omitted.
        amount : Decimal | None
            Requested amount; drawn at random when omitted.

        Returns
        -------
        BillingRecord
            Generated record in GENERATED status.
        """
        issued = issued or self.fake.date_between(start_date="-90d", end_date="today")
        if amount is None:
            amount = Decimal(str(round(self.random.uniform(50, 25000), 2)))
        country = self.random.choice(self.COUNTRIES)
        method = self.random.choices(self.PAYMENT_METHODS, weights=self.PAYMENT_WEIGHTS, k=1)[0]

        return BillingRecord(
            invoice_id=self.invoice_id(issued),
            payment_reference_id=self.payment_reference(),
            business_case_reference=self.guarantee_reference(country),
            business_case_id=self.digits(8),
            sender_reference=f"COMM-{self.digits(6)}",
            requested_amount=amount,
            billing_amount=amount,
            start_date=issued,
            end_date=issued + timedelta(days=30),
            status=InvoiceStatus.GENERATED.value,
            mt_status=self.random.choice(["ACKED", "PENDING", None]),
            payment_method=method.value,
            guarantee_type=self.random.choice(self.GUARANTEE_TYPES),
            comm_id_email=self.random.random() < 0.5,
        )
