"""Daily ledger import: resolve, group, and apply import rules."""

import logging
from datetime import datetime
from typing import Callable, Iterable

from reco_engine.config import EngineConfig
from reco_engine.kpi.grouping import compute_grouping, counterparts
from reco_engine.matching.resolver import ReferenceResolver, link_references
from reco_engine.matching.tokens import extract_tokens
from reco_engine.models.enums import ChangeSource, TriggerContext
from reco_engine.models.rule import RuleEvaluationResult
from reco_engine.models.transaction import Transaction
from reco_engine.processing.report import BatchReport
from reco_engine.rules.context import build_rule_context
from reco_engine.rules.engine import RulesEngine
from reco_engine.store.ledger import LedgerStore
from reco_engine.store.snapshot import BillingSnapshot
from reco_engine.workflow.updater import WorkflowChange, WorkflowUpdater, result_to_change

logger = logging.getLogger(__name__)


class ImportProcessor:
    """Run one ledger extract through the reconciliation pipeline.

    Steps, each isolated per transaction:

    1. register the line (new lines vs. re-imports by natural key)
    2. resolve billing references and back-fill empty link fields
    3. recompute grouping KPIs over every active stored transaction
    4. evaluate import rules and apply self outputs
    5. apply counterpart outputs to the opposite side of each group
    6. give new lines no rule matched the fallback action, unless a
       counterpart output already set one

    Parameters
    ----------
    engine : RulesEngine
        Loaded rule table.
    snapshot : BillingSnapshot
        Billing records of this batch.
    store : LedgerStore
        Ledger store; also the workflow persistence target unless an
        updater is supplied.
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
        self.resolver = ReferenceResolver(snapshot, self.config.resolver)

    def run(self, transactions: Iterable[Transaction], full_extract: bool = False) -> BatchReport:
        """Process an extract.

        Parameters
        ----------
        transactions : Iterable[Transaction]
            Lines read from the ledger extract.
        full_extract : bool
            When True, stored lines of the extract's accounts that are
            missing from it are soft-deleted.

        Returns
        -------
        BatchReport
            Counts and per-transaction failures.
        """
        report = BatchReport()
        batch: dict[str, tuple[Transaction, bool]] = {}

        for incoming in transactions:
            report.processed += 1
            try:
                stored, first = self.store.register(incoming)
            except Exception as exc:
                logger.exception("Could not register transaction %s", incoming.transaction_id)
                report.fail(incoming.transaction_id, "register", exc)
                continue
            if stored.transaction_id in batch:
                continue
            batch[stored.transaction_id] = (stored, first)
            if first:
                report.new_lines += 1
            else:
                report.reimported_lines += 1

        if full_extract:
            self._delete_missing(batch, report)

        failed: set[str] = set()
        for stored, _ in batch.values():
            try:
                self._resolve(stored, report)
            except Exception as exc:
                logger.exception("Resolution failed for transaction %s", stored.transaction_id)
                report.fail(stored.transaction_id, "resolve", exc)
                failed.add(stored.transaction_id)

        groups = compute_grouping(self.store.transactions.values())

        results: list[tuple[Transaction, RuleEvaluationResult]] = []
        unmatched: list[Transaction] = []
        today = self.clock().date()
        for stored, first in batch.values():
            if stored.transaction_id in failed:
                continue
            try:
                record = self.snapshot.get(stored.workflow.invoice_id)
                ctx = build_rule_context(stored, record, is_first_occurrence=first, today=today)
                result = self.engine.evaluate(ctx, TriggerContext.IMPORT)
                if result is not None:
                    self._apply_self(stored, result, report)
            except Exception as exc:
                logger.exception("Import rules failed for transaction %s", stored.transaction_id)
                report.fail(stored.transaction_id, "rules", exc)
                failed.add(stored.transaction_id)
                continue
            if result is not None:
                results.append((stored, result))
            elif first:
                unmatched.append(stored)

        self._apply_counterparts(results, groups, report)

        # Counterpart outputs may already have set the action
        for stored in unmatched:
            self._apply_fallback(stored, report)

        logger.info(
            "Import finished: %d lines (%d new), %d resolved, %d rules applied, %d failures",
            report.processed,
            report.new_lines,
            sum(report.resolved.values()),
            sum(report.rules_applied.values()),
            len(report.failures),
        )
        return report

    def _delete_missing(self, batch: dict[str, tuple[Transaction, bool]], report: BatchReport) -> None:
        accounts = {stored.account_id for stored, _ in batch.values()}
        now = self.clock()
        for account_id in accounts:
            for existing in self.store.get_account_transactions(account_id):
                if existing.deleted_at is None and existing.transaction_id not in batch:
                    self.store.soft_delete(existing.transaction_id, now)
                    report.deleted_lines += 1

    def _resolve(self, transaction: Transaction, report: BatchReport) -> None:
        tokens = extract_tokens(transaction)
        resolution = self.resolver.resolve(transaction, tokens)
        if resolution is None:
            report.unresolved += 1
            return
        report.resolved[resolution.step.value] += 1
        if resolution.is_suggestion and not self.config.resolver.link_suggestions:
            return

        links = link_references(tokens, resolution.record)
        workflow = transaction.workflow
        updates = {
            name: value
            for name, value in (
                ("invoice_id", links.invoice_id),
                ("payment_reference_id", links.payment_reference_id),
                ("guarantee_id", links.guarantee_id),
            )
            if value and not getattr(workflow, name)
        }
        if updates:
            self.updater.commit(transaction, [WorkflowChange(ChangeSource.RESOLUTION, updates)])
            logger.debug(
                "Transaction %s linked via %s: %s",
                transaction.transaction_id,
                resolution.step.value,
                updates,
            )

    def _apply_self(self, transaction: Transaction, result: RuleEvaluationResult, report: BatchReport) -> None:
        # Import always applies; auto_apply only gates interactive edits
        if not result.applies_to_self:
            return
        self.updater.apply_rule(transaction, result, ChangeSource.IMPORT_RULE)
        report.rules_applied[result.rule_id] += 1

    def _apply_fallback(self, transaction: Transaction, report: BatchReport) -> None:
        workflow_config = self.config.workflow
        if workflow_config.fallback_action_id is None or transaction.workflow.action_id is not None:
            return
        change = WorkflowChange(
            ChangeSource.FALLBACK,
            {"action_id": workflow_config.fallback_action_id},
            message=workflow_config.fallback_message,
        )
        try:
            self.updater.commit(transaction, [change])
        except Exception as exc:
            logger.exception("Fallback action failed for transaction %s", transaction.transaction_id)
            report.fail(transaction.transaction_id, "fallback", exc)
            return
        report.fallback_applied += 1

    def _apply_counterparts(
        self,
        results: list[tuple[Transaction, RuleEvaluationResult]],
        groups: dict[str, list[Transaction]],
        report: BatchReport,
    ) -> None:
        done: set[tuple[str, str]] = set()
        today = self.clock().date()
        for source, result in results:
            if not result.applies_to_counterpart:
                continue
            for target in counterparts(source, groups):
                key = (target.transaction_id, result.rule_id)
                if key in done:
                    continue
                done.add(key)
                change = result_to_change(
                    result, ChangeSource.COUNTERPART_RULE, today, self.config.workflow.current_user
                )
                try:
                    self.updater.commit(target, [change])
                except Exception as exc:
                    logger.exception("Counterpart update failed for transaction %s", target.transaction_id)
                    report.fail(target.transaction_id, "counterpart", exc)
                    continue
                report.counterpart_updates += 1
