"""Ledger transaction model with its workflow and grouping sub-records."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from reco_engine.dates import parse_date
from reco_engine.models.billing import parse_amount
from reco_engine.models.enums import AccountSide, TransactionType


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class WorkflowState:
    """Mutable reconciliation workflow fields of a transaction."""

    action_id: int | None = None
    action_done: bool | None = None
    action_date: datetime | None = None
    kpi_id: int | None = None
    incident_type_id: int | None = None
    risky_item: bool | None = None
    reason_non_risky_id: int | None = None
    comments: str = ""  # newest line first, newline separated
    assignee: str | None = None
    to_remind: bool | None = None
    to_remind_date: date | None = None
    first_claim_date: date | None = None
    last_claim_date: date | None = None
    trigger_date: date | None = None

    # Resolved billing links
    invoice_id: str | None = None
    guarantee_id: str | None = None
    payment_reference_id: str | None = None
    internal_invoice_reference: str | None = None

    modified_at: datetime | None = None
    modified_by: str | None = None


@dataclass
class GroupingKpi:
    """Cross-side grouping figures computed for a transaction."""

    is_grouped: bool = False
    missing_amount: Decimal | None = None
    counterpart_total_amount: Decimal | None = None
    counterpart_count: int | None = None

    @property
    def is_amount_match(self) -> bool:
        """True when grouped and both sides balance exactly."""
        return self.is_grouped and self.missing_amount is not None and self.missing_amount == 0


@dataclass
class Transaction:
    """Ledger line from an accounting extract."""

    transaction_id: str
    account_id: str
    side: AccountSide
    signed_amount: Decimal
    operation_date: date | None = None
    value_date: date | None = None
    event_num: str | None = None
    reconciliation_num: str | None = None
    reconciliation_origin_num: str | None = None
    raw_label: str | None = None
    local_signed_amount: Decimal | None = None
    currency: str | None = None
    country: str | None = None  # booking entity
    category: TransactionType | None = None  # pivot extract category
    invoice_hint: str | None = None  # receivable extract invoice column
    deleted_at: datetime | None = None

    workflow: WorkflowState = field(default_factory=WorkflowState)
    grouping: GroupingKpi = field(default_factory=GroupingKpi)

    @property
    def sign(self) -> str:
        """Sign code: C for credits (zero included), D for debits."""
        return "C" if self.signed_amount >= 0 else "D"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def group_key(self) -> str | None:
        """Normalised billing reference used to pair both ledger sides."""
        for value in (self.workflow.invoice_id, self.workflow.internal_invoice_reference):
            if value and value.strip():
                return value.strip().upper()
        return None

    def natural_key(self) -> str:
        """Business identity of the line across repeated imports.

        Two import rows are the same transaction when they share account,
        event number, label, reconciliation and origin numbers, operation
        date and signed amount.
        """
        parts = [
            self.account_id,
            self.event_num,
            self.raw_label,
            self.reconciliation_num,
            self.reconciliation_origin_num,
        ]
        normalised = [(p or "").strip().upper() for p in parts]
        op_date = self.operation_date.strftime("%Y%m%d") if self.operation_date else ""
        return "|".join(normalised + [op_date, f"{self.signed_amount:.2f}"])

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "Transaction":
        """Build a transaction from a ledger extract row.

        Keys use the dataclass field names. ``side`` accepts ``PIVOT`` /
        ``RECEIVABLE`` (or ``P`` / ``R``); an optional ``workflow`` mapping
        seeds the workflow state, e.g. links kept from a previous session.

        Raises
        ------
        ValueError
            When the id, account, side or amount is missing or invalid.
        """
        transaction_id = _text(raw.get("transaction_id"))
        account_id = _text(raw.get("account_id"))
        if transaction_id is None or account_id is None:
            raise ValueError("transaction_id and account_id are required")

        side_text = (_text(raw.get("side")) or "").upper()
        side_text = {"P": "PIVOT", "R": "RECEIVABLE"}.get(side_text, side_text)
        side = AccountSide(side_text)

        amount = parse_amount(raw.get("signed_amount"))
        if amount is None:
            raise ValueError(f"Transaction {transaction_id} has no valid signed_amount")

        category = _text(raw.get("category"))
        workflow = WorkflowState(**dict(raw.get("workflow") or {}))
        for name in ("action_date", "modified_at"):
            value = getattr(workflow, name)
            if isinstance(value, str):
                setattr(workflow, name, datetime.fromisoformat(value))
        for name in ("to_remind_date", "first_claim_date", "last_claim_date", "trigger_date"):
            value = getattr(workflow, name)
            if isinstance(value, str):
                setattr(workflow, name, parse_date(value))

        return cls(
            transaction_id=transaction_id,
            account_id=account_id,
            side=side,
            signed_amount=amount,
            operation_date=parse_date(raw.get("operation_date")),
            value_date=parse_date(raw.get("value_date")),
            event_num=_text(raw.get("event_num")),
            reconciliation_num=_text(raw.get("reconciliation_num")),
            reconciliation_origin_num=_text(raw.get("reconciliation_origin_num")),
            raw_label=_text(raw.get("raw_label")),
            local_signed_amount=parse_amount(raw.get("local_signed_amount")),
            currency=_text(raw.get("currency")),
            country=_text(raw.get("country")),
            category=TransactionType(category.upper().replace(" ", "_")) if category else None,
            invoice_hint=_text(raw.get("invoice_hint")),
            workflow=workflow,
        )
