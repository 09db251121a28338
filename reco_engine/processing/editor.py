"""Manual edits followed by edit-scope rules."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from reco_engine.config import EngineConfig
from reco_engine.exceptions import PersistenceError
from reco_engine.kpi.grouping import GroupingIndex
from reco_engine.models.enums import ChangeSource, TriggerContext
from reco_engine.models.rule import RuleEvaluationResult
from reco_engine.models.transaction import Transaction
from reco_engine.processing.report import TransactionFailure
from reco_engine.rules.context import build_rule_context
from reco_engine.rules.engine import RulesEngine
from reco_engine.store.ledger import LedgerStore
from reco_engine.store.snapshot import BillingSnapshot
from reco_engine.workflow.updater import WorkflowChange, WorkflowUpdater, result_to_change

logger = logging.getLogger(__name__)


@dataclass
class EditOutcome:
    """What an edit changed."""

    transaction: Transaction
    rule_result: RuleEvaluationResult | None = None
    rule_applied: bool = False
    counterparts_updated: list[str] = field(default_factory=list)
    regrouped: set[str] = field(default_factory=set)
    counterpart_failures: list[TransactionFailure] = field(default_factory=list)

    @property
    def pending_confirmation(self) -> bool:
        """A rule matched but waits for the user to confirm it."""
        return self.rule_result is not None and not self.rule_applied


class EditProcessor:
    """Apply a user's field edit and the edit rules it triggers.

    Edit rules are evaluated once, against the state the user's edit
    produces, and their outputs are saved in the same commit as the edit.
    Rule outputs never trigger another evaluation.

    Parameters
    ----------
    engine : RulesEngine
        Loaded rule table.
    snapshot : BillingSnapshot
        Current billing records.
    store : LedgerStore
        Ledger store and persistence target.
    grouping : GroupingIndex | None
        Incremental grouping index; built from the store when omitted.
    config : EngineConfig | None
        Engine configuration.
    updater : WorkflowUpdater | None
        Workflow updater; built from ``config`` and ``store`` when omitted.
    clock : Callable[[], datetime]
        Source of "now".
    """

    def __init__(
        self,
        engine: RulesEngine,
        snapshot: BillingSnapshot,
        store: LedgerStore,
        grouping: GroupingIndex | None = None,
        config: EngineConfig | None = None,
        updater: WorkflowUpdater | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.engine = engine
        self.snapshot = snapshot
        self.store = store
        self.config = config or EngineConfig()
        self.clock = clock
        self.updater = updater or WorkflowUpdater(self.config.workflow, store=store, clock=clock)
        self.grouping = grouping or GroupingIndex(store.transactions.values())

    def apply_edit(
        self,
        transaction_id: str,
        fields: dict[str, Any],
        user: str | None = None,
        comment: str | None = None,
    ) -> EditOutcome:
        """Save a manual edit.

        Parameters
        ----------
        transaction_id : str
            Edited transaction.
        fields : dict[str, Any]
            Workflow fields set by the user.
        user : str | None
            Editing user, for attribution.
        comment : str | None
            Optional comment line to add with the edit.

        Returns
        -------
        EditOutcome
            Rule result, whether it was applied, regrouped keys and any
            counterpart that could not be saved.

        Raises
        ------
        EntityNotFoundError
            When the transaction is unknown.
        PersistenceError
            When the save of the edited transaction fails; it keeps its
            previous state. Counterpart save failures are reported in the
            outcome instead.
        """
        transaction = self.store.require(transaction_id)
        user = user or self.config.workflow.current_user
        manual = WorkflowChange(ChangeSource.MANUAL, dict(fields), message=comment, user=user)

        draft = self.updater.preview(transaction, [manual])
        draft.grouping = self.grouping.preview(draft)
        record = self.snapshot.get(draft.workflow.invoice_id)
        ctx = build_rule_context(draft, record, is_first_occurrence=False, today=self.clock().date())
        result = self.engine.evaluate(ctx, TriggerContext.EDIT)

        changes = [manual]
        outcome = EditOutcome(transaction=transaction, rule_result=result)
        if result is not None and result.rule.auto_apply and result.applies_to_self:
            changes.append(result_to_change(result, ChangeSource.EDIT_RULE, self.clock().date(), user))
            outcome.rule_applied = True

        self.updater.commit(transaction, changes)
        outcome.regrouped = self.grouping.refresh(transaction)

        if result is not None and result.rule.auto_apply and result.applies_to_counterpart:
            outcome.rule_applied = True
            self._apply_counterparts(transaction, result, user, outcome)

        logger.info(
            "Edit saved on %s by %s%s",
            transaction_id,
            user,
            f" (rule {result.rule_id})" if outcome.rule_applied and result is not None else "",
        )
        return outcome

    def delete(self, transaction_id: str) -> set[str]:
        """Soft-delete a transaction and recompute its group."""
        self.store.soft_delete(transaction_id, self.clock())
        return self.grouping.refresh(self.store.require(transaction_id))

    def _apply_counterparts(
        self,
        transaction: Transaction,
        result: RuleEvaluationResult,
        user: str,
        outcome: EditOutcome,
    ) -> None:
        key = transaction.group_key
        if key is None:
            return
        opposite = transaction.side.opposite
        for target in self.grouping.members(key):
            if target.side is not opposite:
                continue
            change = result_to_change(result, ChangeSource.COUNTERPART_RULE, self.clock().date(), user)
            try:
                self.updater.commit(target, [change])
            except PersistenceError as exc:
                logger.error("Counterpart update failed for transaction %s: %s", target.transaction_id, exc)
                outcome.counterpart_failures.append(
                    TransactionFailure(target.transaction_id, "counterpart", f"{type(exc).__name__}: {exc}")
                )
                continue
            outcome.counterparts_updated.append(target.transaction_id)
