"""Apply rule outputs and manual edits to transaction workflow state."""

import copy
import logging
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timedelta
from typing import Any, Callable, Protocol, Sequence

from reco_engine.config import WorkflowConfig
from reco_engine.exceptions import InvalidEntityStateError, PersistenceError
from reco_engine.logging import log_rule_applied
from reco_engine.models.enums import ChangeSource
from reco_engine.models.rule import RuleEvaluationResult
from reco_engine.models.transaction import Transaction, WorkflowState

logger = logging.getLogger(__name__)

# Fields stamped by the updater itself.
_MANAGED_FIELDS = {"modified_at", "modified_by"}
ASSIGNABLE_FIELDS = frozenset(f.name for f in fields(WorkflowState)) - _MANAGED_FIELDS

_ORIGINS = {
    ChangeSource.MANUAL: "manual",
    ChangeSource.IMPORT_RULE: "import",
    ChangeSource.EDIT_RULE: "edit",
    ChangeSource.COUNTERPART_RULE: "counterpart",
    ChangeSource.FALLBACK: "fallback",
    ChangeSource.RESOLUTION: "resolution",
}


class WorkflowStore(Protocol):
    """Persistence target for workflow state."""

    def save(self, transaction: Transaction) -> None: ...


@dataclass
class WorkflowChange:
    """One source of workflow field assignments."""

    source: ChangeSource
    fields: dict[str, Any] = field(default_factory=dict)
    rule_id: str | None = None
    message: str | None = None
    user: str | None = None


def format_comment(when: datetime, user: str, message: str, rule_id: str | None = None) -> str:
    """Comment log line: ``[yyyy-MM-dd HH:mm] user: [Rule id] message``."""
    body = f"[Rule {rule_id}] {message}" if rule_id else message
    return f"[{when:%Y-%m-%d %H:%M}] {user}: {body}"


def prepend_comment(log: str, line: str, dedupe_key: str | None = None) -> str:
    """Insert ``line`` at the head of ``log`` unless ``dedupe_key`` is already there."""
    if dedupe_key and dedupe_key in log:
        return log
    return f"{line}\n{log}" if log else line


def result_to_change(
    result: RuleEvaluationResult,
    source: ChangeSource,
    today: date,
    user: str | None = None,
) -> WorkflowChange:
    """Turn a rule evaluation result into workflow assignments.

    Parameters
    ----------
    result : RuleEvaluationResult
        Selected rule and its outputs.
    source : ChangeSource
        Which trigger produced the result.
    today : date
        Base day for the reminder offset and the first claim date.
    user : str | None
        User the comment line is attributed to.

    Returns
    -------
    WorkflowChange
        Change carrying the rule id and message for the comment log.
    """
    outputs = result.outputs
    assigned: dict[str, Any] = {}
    for name in ("action_id", "kpi_id", "incident_type_id", "risky_item", "reason_non_risky_id", "to_remind"):
        value = getattr(outputs, name)
        if value is not None:
            assigned[name] = value
    if outputs.to_remind_days is not None:
        assigned["to_remind_date"] = today + timedelta(days=outputs.to_remind_days)
    if outputs.first_claim_today:
        assigned["first_claim_date"] = today
    return WorkflowChange(
        source=source,
        fields=assigned,
        rule_id=result.rule_id,
        message=result.message,
        user=user,
    )


class WorkflowUpdater:
    """Merge workflow changes and persist them atomically.

    Whatever the source, assigning an action id re-stamps the action date,
    and the N/A action forces the item done. A failed write restores the
    in-memory state as it was before the attempt.

    Parameters
    ----------
    config : WorkflowConfig | None
        N/A action id and default user.
    store : WorkflowStore | None
        Persistence target; None keeps changes in memory only.
    clock : Callable[[], datetime]
        Source of "now".
    """

    def __init__(
        self,
        config: WorkflowConfig | None = None,
        store: WorkflowStore | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or WorkflowConfig()
        self.store = store
        self.clock = clock

    def commit(self, transaction: Transaction, changes: Sequence[WorkflowChange]) -> WorkflowState:
        """Apply ``changes`` in order and persist the result.

        Parameters
        ----------
        transaction : Transaction
            Transaction whose workflow state is updated in place.
        changes : Sequence[WorkflowChange]
            Changes from one save cycle; later changes win on shared fields.

        Returns
        -------
        WorkflowState
            The updated state.

        Raises
        ------
        InvalidEntityStateError
            When a change targets an unknown field; nothing is applied.
        PersistenceError
            When the store rejects the write; the state is rolled back.
        """
        state = transaction.workflow
        snapshot = copy.deepcopy(state)
        now = self.clock()

        self._apply(state, changes, now)

        if self.store is not None:
            try:
                self.store.save(transaction)
            except Exception as exc:
                _restore(state, snapshot)
                logger.error(
                    "Failed to persist workflow of transaction %s, changes rolled back: %s",
                    transaction.transaction_id,
                    exc,
                )
                raise PersistenceError(
                    f"Could not save workflow of transaction {transaction.transaction_id}: {exc}",
                    transaction_id=transaction.transaction_id,
                ) from exc

        for change in changes:
            if change.rule_id:
                log_rule_applied(
                    _ORIGINS[change.source],
                    transaction.transaction_id,
                    change.rule_id,
                    change.fields,
                    change.message,
                )
        return state

    def apply_rule(
        self,
        transaction: Transaction,
        result: RuleEvaluationResult,
        source: ChangeSource,
    ) -> WorkflowState:
        """Apply one rule result to ``transaction`` and persist it."""
        change = result_to_change(result, source, self.clock().date(), self.config.current_user)
        return self.commit(transaction, [change])

    def add_comment(self, transaction: Transaction, message: str, user: str | None = None) -> WorkflowState:
        """Prepend a manual comment line."""
        change = WorkflowChange(source=ChangeSource.MANUAL, message=message, user=user)
        return self.commit(transaction, [change])

    def preview(self, transaction: Transaction, changes: Sequence[WorkflowChange]) -> Transaction:
        """Copy of ``transaction`` with ``changes`` applied, nothing persisted."""
        draft = copy.deepcopy(transaction)
        self._apply(draft.workflow, changes, self.clock())
        return draft

    def _apply(self, state: WorkflowState, changes: Sequence[WorkflowChange], now: datetime) -> None:
        merged: dict[str, Any] = {}
        for change in changes:
            unknown = set(change.fields) - ASSIGNABLE_FIELDS
            if unknown:
                raise InvalidEntityStateError(f"Unknown workflow fields: {sorted(unknown)}")
            merged.update(change.fields)

        previous_action = state.action_id
        for name, value in merged.items():
            setattr(state, name, value)

        if "action_id" in merged:
            state.action_date = now
            if state.action_id != previous_action and "action_done" not in merged:
                state.action_done = False
            elif state.action_done is None:
                state.action_done = False

        if state.action_id is not None and state.action_id == self.config.na_action_id:
            state.action_done = True
            if "action_id" in merged or state.action_date is None:
                state.action_date = now

        for change in changes:
            if not change.message:
                continue
            user = change.user or self.config.current_user
            line = format_comment(now, user, change.message, change.rule_id)
            key = f"[Rule {change.rule_id}] {change.message}" if change.rule_id else None
            state.comments = prepend_comment(state.comments, line, key)

        if changes:
            state.modified_at = now
            state.modified_by = next(
                (c.user for c in reversed(changes) if c.user), self.config.current_user
            )


def _restore(state: WorkflowState, snapshot: WorkflowState) -> None:
    for f in fields(WorkflowState):
        setattr(state, f.name, getattr(snapshot, f.name))
