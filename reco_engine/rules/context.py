"""Build rule evaluation contexts from transactions."""

from datetime import date

from reco_engine.models.billing import BillingRecord
from reco_engine.models.enums import AccountSide, InvoiceStatus, TransactionType
from reco_engine.models.rule import RuleContext
from reco_engine.models.transaction import Transaction

# Label keywords for pivot lines without an extract category, checked in order.
PIVOT_LABEL_KEYWORDS: tuple[tuple[str, TransactionType], ...] = (
    ("COLLECTION", TransactionType.COLLECTION),
    ("AUTOMATIC REFUND", TransactionType.PAYMENT),
    ("PAYMENT", TransactionType.PAYMENT),
    ("ADJUSTMENT", TransactionType.ADJUSTMENT),
    ("XCL LOADER", TransactionType.XCL_LOADER),
    ("TRIGGER", TransactionType.TRIGGER),
)


def detect_transaction_type(transaction: Transaction, record: BillingRecord | None) -> TransactionType | None:
    """Classify a ledger line for rule matching.

    Pivot lines use their extract category, else label keywords; a pivot
    direct debit counts as a collection. Receivable lines take the payment
    method of the linked billing record and stay unclassified without one.
    """
    label = (transaction.raw_label or "").upper()

    if transaction.side is AccountSide.PIVOT:
        if "TO CATEGORIZE" in label:
            return TransactionType.TO_CATEGORIZE
        detected = transaction.category
        if detected is None:
            detected = next(
                (tx_type for keyword, tx_type in PIVOT_LABEL_KEYWORDS if keyword in label),
                TransactionType.TO_CATEGORIZE,
            )
        if detected is TransactionType.DIRECT_DEBIT:
            return TransactionType.COLLECTION
        return detected

    if record is None or not record.payment_method:
        return None
    method = record.payment_method.strip().upper().replace(" ", "_")
    try:
        return TransactionType(method)
    except ValueError:
        return None


def _days_since(value: date | None, today: date) -> int | None:
    return (today - value).days if value is not None else None


def build_rule_context(
    transaction: Transaction,
    record: BillingRecord | None,
    is_first_occurrence: bool,
    today: date | None = None,
) -> RuleContext:
    """Snapshot the attributes a rule may test.

    Parameters
    ----------
    transaction : Transaction
        Ledger line with its current workflow state and grouping figures.
    record : BillingRecord | None
        Billing record the line is linked to, if any.
    is_first_occurrence : bool
        Whether this import is the first time the line's natural key is seen.
    today : date | None
        Reference day for day-count attributes.

    Returns
    -------
    RuleContext
        Context to hand to ``RulesEngine.evaluate``.
    """
    today = today or date.today()
    workflow = transaction.workflow
    tx_type = detect_transaction_type(transaction, record)

    guarantee_type = None
    if transaction.side is AccountSide.RECEIVABLE and record is not None:
        guarantee_type = record.guarantee_type

    invoice_initiated = None
    if record is not None and record.status:
        invoice_initiated = record.normalized_status == InvoiceStatus.INITIATED.value

    return RuleContext(
        transaction_id=transaction.transaction_id,
        account_side=transaction.side,
        transaction_type=tx_type.value if tx_type else None,
        guarantee_type=guarantee_type,
        booking=transaction.country,
        sign=transaction.sign,
        has_billing_link=bool(
            workflow.invoice_id or workflow.guarantee_id or workflow.payment_reference_id
        ),
        is_grouped=transaction.grouping.is_grouped,
        is_amount_match=transaction.grouping.is_amount_match,
        mt_acked=record.is_mt_acked if record is not None else None,
        comm_id_email=record.comm_id_email if record is not None else None,
        invoice_initiated=invoice_initiated,
        trigger_date_is_null=workflow.trigger_date is None,
        is_first_request=workflow.first_claim_date is None,
        operation_days_ago=_days_since(transaction.operation_date, today),
        days_since_reminder=_days_since(workflow.last_claim_date, today),
        days_since_trigger=_days_since(workflow.trigger_date, today),
        is_first_occurrence=is_first_occurrence,
        current_action_id=workflow.action_id,
        current_action_done=workflow.action_done,
    )
