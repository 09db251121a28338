"""Billing record model (external invoice / guarantee payment)."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from reco_engine.dates import parse_date


def parse_amount(value: Any) -> Decimal | None:
    """Parse an extract amount, returning None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = str(value).strip().replace(" ", "").replace("\u00a0", "")
    if not text:
        return None
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip().upper()
    if text in ("TRUE", "YES", "Y", "1"):
        return True
    if text in ("FALSE", "NO", "N", "0"):
        return False
    return None


@dataclass(frozen=True)
class BillingRecord:
    """Invoice or guarantee payment from the billing system.

    Dates may be kept as raw extract strings; the resolver parses them
    lazily and treats unparseable values as unknown.
    """

    invoice_id: str
    payment_reference_id: str | None = None
    business_case_reference: str | None = None
    business_case_id: str | None = None
    sender_reference: str | None = None  # commission / official reference
    requested_amount: Decimal | None = None
    billing_amount: Decimal | None = None
    start_date: date | str | None = None
    end_date: date | str | None = None
    status: str | None = None
    mt_status: str | None = None
    payment_method: str | None = None
    guarantee_type: str | None = None
    comm_id_email: bool | None = None

    @property
    def reference_date(self) -> date | None:
        """Start date when known, else end date."""
        return parse_date(self.start_date) or parse_date(self.end_date)

    @property
    def normalized_status(self) -> str:
        return (self.status or "").strip().upper()

    @property
    def is_mt_acked(self) -> bool | None:
        if not self.mt_status:
            return None
        return self.mt_status.strip().upper() == "ACKED"

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "BillingRecord":
        """Build a record from extract column values.

        Parameters
        ----------
        raw : Mapping[str, Any]
            Row keyed by field name (same names as the dataclass).

        Returns
        -------
        BillingRecord
            Record with amounts as Decimal and dates parsed where possible.
        """
        def _date(key: str) -> date | str | None:
            value = raw.get(key)
            return parse_date(value) or _clean(value)

        return cls(
            invoice_id=_clean(raw.get("invoice_id")) or "",
            payment_reference_id=_clean(raw.get("payment_reference_id")),
            business_case_reference=_clean(raw.get("business_case_reference")),
            business_case_id=_clean(raw.get("business_case_id")),
            sender_reference=_clean(raw.get("sender_reference")),
            requested_amount=parse_amount(raw.get("requested_amount")),
            billing_amount=parse_amount(raw.get("billing_amount")),
            start_date=_date("start_date"),
            end_date=_date("end_date"),
            status=_clean(raw.get("status")),
            mt_status=_clean(raw.get("mt_status")),
            payment_method=_clean(raw.get("payment_method")),
            guarantee_type=_clean(raw.get("guarantee_type")),
            comm_id_email=_flag(raw.get("comm_id_email")),
        )
