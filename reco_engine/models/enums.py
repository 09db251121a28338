"""Enumeration types for reconciliation entities."""

from enum import Enum


class AccountSide(str, Enum):
    PIVOT = "PIVOT"
    RECEIVABLE = "RECEIVABLE"

    @property
    def opposite(self) -> "AccountSide":
        return AccountSide.RECEIVABLE if self is AccountSide.PIVOT else AccountSide.PIVOT


class TriggerContext(str, Enum):
    IMPORT = "IMPORT"
    EDIT = "EDIT"


class RuleScope(str, Enum):
    IMPORT = "IMPORT"
    EDIT = "EDIT"
    BOTH = "BOTH"

    def includes(self, trigger: TriggerContext) -> bool:
        return self is RuleScope.BOTH or self.value == trigger.value


class ApplyTarget(str, Enum):
    SELF = "SELF"
    COUNTERPART = "COUNTERPART"
    BOTH = "BOTH"


class TransactionType(str, Enum):
    COLLECTION = "COLLECTION"
    PAYMENT = "PAYMENT"
    ADJUSTMENT = "ADJUSTMENT"
    XCL_LOADER = "XCL_LOADER"
    TRIGGER = "TRIGGER"
    MANUAL_OUTGOING = "MANUAL_OUTGOING"
    INCOMING_PAYMENT = "INCOMING_PAYMENT"
    OUTGOING_PAYMENT = "OUTGOING_PAYMENT"
    DIRECT_DEBIT = "DIRECT_DEBIT"
    EXTERNAL_DEBIT_PAYMENT = "EXTERNAL_DEBIT_PAYMENT"
    TO_CATEGORIZE = "TO_CATEGORIZE"


class InvoiceStatus(str, Enum):
    INITIATED = "INITIATED"
    GENERATED = "GENERATED"
    DRAFT = "DRAFT"
    CANCELLED = "CANCELLED"
    PAID = "PAID"


class MatchStep(str, Enum):
    """Resolution cascade step that produced a billing link."""

    INVOICE_ID = "INVOICE_ID"
    PAYMENT_REFERENCE = "PAYMENT_REFERENCE"
    SENDER_REFERENCE = "SENDER_REFERENCE"
    BUSINESS_CASE = "BUSINESS_CASE"
    SUGGESTION = "SUGGESTION"


class TokenKind(str, Enum):
    INVOICE = "INVOICE"
    PAYMENT_REFERENCE = "PAYMENT_REFERENCE"
    GUARANTEE = "GUARANTEE"


class ChangeSource(str, Enum):
    MANUAL = "MANUAL"
    IMPORT_RULE = "IMPORT_RULE"
    EDIT_RULE = "EDIT_RULE"
    COUNTERPART_RULE = "COUNTERPART_RULE"
    FALLBACK = "FALLBACK"
    RESOLUTION = "RESOLUTION"
