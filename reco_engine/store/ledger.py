"""In-memory ledger store with first-occurrence tracking."""

import copy
from dataclasses import dataclass, field
from datetime import datetime

from reco_engine.exceptions import (
    EntityNotFoundError,
    InvalidEntityStateError,
    ReferentialIntegrityError,
)
from reco_engine.models.enums import AccountSide
from reco_engine.models.transaction import Transaction, WorkflowState

# Extract columns refreshed when a known line comes back with a new natural key
LEDGER_FIELDS = (
    "event_num",
    "reconciliation_num",
    "reconciliation_origin_num",
    "raw_label",
    "signed_amount",
    "local_signed_amount",
    "operation_date",
    "value_date",
    "currency",
    "country",
    "category",
    "invoice_hint",
)


@dataclass
class LedgerStore:
    """In-memory store for ledger transactions with relationship tracking.

    Transactions are never removed; deletion sets ``deleted_at``. The
    store also remembers every natural key it has seen so repeated imports
    of the same line can be told apart from new lines.
    """

    accounts: dict[str, AccountSide] = field(default_factory=dict)
    transactions: dict[str, Transaction] = field(default_factory=dict)

    # Relationship indexes
    _account_transactions: dict[str, list[str]] = field(default_factory=dict)
    _natural_keys: dict[str, str] = field(default_factory=dict)

    # Last persisted workflow state per transaction
    _persisted: dict[str, WorkflowState] = field(default_factory=dict)

    def add_account(self, account_id: str, side: AccountSide) -> None:
        """Declare a ledger account and the side it belongs to."""
        current = self.accounts.get(account_id)
        if current is not None and current is not side:
            raise InvalidEntityStateError(f"Account {account_id} is already registered as {current.value}")
        self.accounts[account_id] = side
        self._account_transactions.setdefault(account_id, [])

    def add_transaction(self, transaction: Transaction) -> None:
        """Add a new transaction to the store."""
        side = self.accounts.get(transaction.account_id)
        if side is None:
            raise ReferentialIntegrityError(f"Account {transaction.account_id} not found")
        if side is not transaction.side:
            raise InvalidEntityStateError(
                f"Transaction {transaction.transaction_id} is {transaction.side.value} "
                f"but account {transaction.account_id} is {side.value}"
            )
        if transaction.transaction_id in self.transactions:
            raise InvalidEntityStateError(f"Transaction {transaction.transaction_id} already exists")

        self.transactions[transaction.transaction_id] = transaction
        self._account_transactions[transaction.account_id].append(transaction.transaction_id)
        self._natural_keys[transaction.natural_key()] = transaction.transaction_id
        self._persisted[transaction.transaction_id] = copy.deepcopy(transaction.workflow)

    def register(self, transaction: Transaction) -> tuple[Transaction, bool]:
        """Record an imported line.

        Parameters
        ----------
        transaction : Transaction
            Line as read from the ledger extract.

        Returns
        -------
        tuple[Transaction, bool]
            The stored transaction (the existing one on re-import) and
            whether this is the first time its natural key was seen.
            A known ``transaction_id`` under a new natural key, such as a
            line whose reconciliation number was filled in later, is a
            re-import: the stored ledger columns are refreshed and the
            workflow state is kept.
        """
        key = transaction.natural_key()
        existing_id = self._natural_keys.get(key)
        if existing_id is None and transaction.transaction_id in self.transactions:
            existing_id = self._rekey(transaction, key)
        if existing_id is None:
            self.add_transaction(transaction)
            return transaction, True

        existing = self.transactions[existing_id]
        if existing.deleted_at is not None:
            existing.deleted_at = None
        return existing, False

    def _rekey(self, transaction: Transaction, key: str) -> str:
        """Refresh a stored line whose ledger fields changed between extracts."""
        existing = self.transactions[transaction.transaction_id]
        if existing.account_id != transaction.account_id:
            raise InvalidEntityStateError(
                f"Transaction {transaction.transaction_id} moved from account "
                f"{existing.account_id} to {transaction.account_id}"
            )
        old_key = existing.natural_key()
        if self._natural_keys.get(old_key) == existing.transaction_id:
            del self._natural_keys[old_key]
        for name in LEDGER_FIELDS:
            setattr(existing, name, getattr(transaction, name))
        self._natural_keys[key] = existing.transaction_id
        return existing.transaction_id

    def is_known(self, transaction: Transaction) -> bool:
        return transaction.natural_key() in self._natural_keys

    def get(self, transaction_id: str) -> Transaction | None:
        return self.transactions.get(transaction_id)

    def require(self, transaction_id: str) -> Transaction:
        """Get a transaction or raise ``EntityNotFoundError``."""
        transaction = self.transactions.get(transaction_id)
        if transaction is None:
            raise EntityNotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    def soft_delete(self, transaction_id: str, when: datetime | None = None) -> None:
        """Mark a transaction deleted; it stays in the store."""
        transaction = self.require(transaction_id)
        transaction.deleted_at = when or datetime.now()

    def active_transactions(self) -> list[Transaction]:
        """All transactions that are not soft-deleted."""
        return [t for t in self.transactions.values() if t.deleted_at is None]

    def get_account_transactions(self, account_id: str) -> list[Transaction]:
        """Get all transactions for an account."""
        ids = self._account_transactions.get(account_id, [])
        return [self.transactions[tid] for tid in ids]

    def save(self, transaction: Transaction) -> None:
        """Persist the workflow state of a stored transaction."""
        if transaction.transaction_id not in self.transactions:
            raise ReferentialIntegrityError(f"Transaction {transaction.transaction_id} not found")
        self._persisted[transaction.transaction_id] = copy.deepcopy(transaction.workflow)

    def persisted_workflow(self, transaction_id: str) -> WorkflowState | None:
        """Copy of the last persisted workflow state."""
        state = self._persisted.get(transaction_id)
        return copy.deepcopy(state) if state is not None else None

    def summary(self) -> dict[str, int]:
        """Return summary counts of stored entities."""
        return {
            "accounts": len(self.accounts),
            "transactions": len(self.transactions),
            "active_transactions": len(self.active_transactions()),
            "deleted_transactions": sum(1 for t in self.transactions.values() if t.deleted_at is not None),
        }
