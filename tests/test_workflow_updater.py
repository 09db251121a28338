"""Tests for workflow state updates."""

from datetime import date, datetime
from unittest.mock import Mock

import pytest

from reco_engine.config import WorkflowConfig
from reco_engine.exceptions import InvalidEntityStateError, PersistenceError
from reco_engine.models import (
    NULL,
    ChangeSource,
    Rule,
    RuleContext,
    RuleEvaluationResult,
    RuleOutputs,
    TriggerContext,
)
from reco_engine.rules.engine import RulesEngine
from reco_engine.workflow import (
    WorkflowChange,
    WorkflowUpdater,
    format_comment,
    prepend_comment,
    result_to_change,
)


def _result(rule_id: str = "R1", message: str | None = "auto", **outputs: object) -> RuleEvaluationResult:
    values = RuleOutputs(**outputs)
    return RuleEvaluationResult(rule=Rule(rule_id, outputs=values, message=message), outputs=values, message=message)


class TestComments:
    """Tests for the comment log helpers."""

    def test_format_with_rule(self) -> None:
        line = format_comment(datetime(2024, 3, 15, 9, 5), "alice", "Claim sent", "R12")

        assert line == "[2024-03-15 09:05] alice: [Rule R12] Claim sent"

    def test_format_manual(self) -> None:
        assert format_comment(datetime(2024, 3, 15, 9, 5), "bob", "hello") == "[2024-03-15 09:05] bob: hello"

    def test_prepend_newest_first(self) -> None:
        assert prepend_comment("old", "new") == "new\nold"
        assert prepend_comment("", "first") == "first"

    def test_prepend_dedupes(self) -> None:
        log = "[2024-03-14 08:00] system: [Rule R1] auto"

        assert prepend_comment(log, "[2024-03-15 08:00] system: [Rule R1] auto", "[Rule R1] auto") == log


class TestResultToChange:
    """Tests for converting rule results into assignments."""

    def test_outputs_and_dates(self) -> None:
        result = _result(action_id=4, kpi_id=16, to_remind=True, to_remind_days=15, first_claim_today=True)

        change = result_to_change(result, ChangeSource.IMPORT_RULE, date(2024, 3, 15), "system")

        assert change.fields == {
            "action_id": 4,
            "kpi_id": 16,
            "to_remind": True,
            "to_remind_date": date(2024, 3, 30),
            "first_claim_date": date(2024, 3, 15),
        }
        assert change.rule_id == "R1"
        assert change.message == "auto"

    def test_unset_outputs_are_left_out(self) -> None:
        change = result_to_change(_result(risky_item=False), ChangeSource.EDIT_RULE, date(2024, 3, 15))

        assert change.fields == {"risky_item": False}


class TestWorkflowUpdater:
    """Tests for WorkflowUpdater.commit and friends."""

    @pytest.fixture
    def updater(self, store, clock) -> WorkflowUpdater:
        return WorkflowUpdater(WorkflowConfig(), store=store, clock=clock)

    def test_action_date_stamped(self, updater, store, make_transaction, now) -> None:
        tx = make_transaction()
        store.add_transaction(tx)

        updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 4})])

        assert tx.workflow.action_id == 4
        assert tx.workflow.action_date == now
        assert tx.workflow.action_done is False
        assert tx.workflow.modified_at == now
        assert tx.workflow.modified_by == "system"
        assert store.persisted_workflow(tx.transaction_id).action_id == 4

    def test_action_date_restamped_for_same_value(self, store, make_transaction) -> None:
        times = iter([datetime(2024, 3, 1, 8, 0), datetime(2024, 3, 2, 8, 0)])
        updater = WorkflowUpdater(store=store, clock=lambda: next(times))
        tx = make_transaction()
        store.add_transaction(tx)

        updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 4})])
        updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 4})])

        assert tx.workflow.action_date == datetime(2024, 3, 2, 8, 0)

    def test_action_change_resets_done(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        tx.workflow.action_id = 3
        tx.workflow.action_done = True
        store.add_transaction(tx)

        updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 4})])

        assert tx.workflow.action_done is False

    def test_explicit_done_is_kept(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        store.add_transaction(tx)

        updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 4, "action_done": True})])

        assert tx.workflow.action_done is True

    def test_na_action_forces_done(self, updater, store, make_transaction, now) -> None:
        tx = make_transaction()
        tx.workflow.action_id = 3
        tx.workflow.action_done = False
        store.add_transaction(tx)

        updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 0})])

        assert tx.workflow.action_id == 0
        assert tx.workflow.action_done is True
        assert tx.workflow.action_date == now

    def test_null_action_is_not_na(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        tx.workflow.action_id = 3
        store.add_transaction(tx)

        updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": None})])

        assert tx.workflow.action_id is None
        assert tx.workflow.action_done is False

    def test_later_changes_win(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        store.add_transaction(tx)
        changes = [
            WorkflowChange(ChangeSource.MANUAL, {"action_id": 4, "kpi_id": 16}),
            WorkflowChange(ChangeSource.EDIT_RULE, {"kpi_id": 17}, rule_id="R9", message="rule"),
        ]

        updater.commit(tx, changes)

        assert tx.workflow.action_id == 4
        assert tx.workflow.kpi_id == 17

    def test_rule_comment_is_deduplicated(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        store.add_transaction(tx)
        result = _result(message="Claimed", kpi_id=16)

        updater.apply_rule(tx, result, ChangeSource.IMPORT_RULE)
        updater.apply_rule(tx, result, ChangeSource.IMPORT_RULE)

        assert tx.workflow.comments == "[2024-03-15 09:30] system: [Rule R1] Claimed"

    def test_add_comment(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        store.add_transaction(tx)

        updater.add_comment(tx, "first", user="alice")
        updater.add_comment(tx, "second", user="bob")

        assert tx.workflow.comments.splitlines() == [
            "[2024-03-15 09:30] bob: second",
            "[2024-03-15 09:30] alice: first",
        ]
        assert tx.workflow.modified_by == "bob"

    def test_unknown_field(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        store.add_transaction(tx)

        with pytest.raises(InvalidEntityStateError, match="nope"):
            updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"nope": 1, "action_id": 4})])

        assert tx.workflow.action_id is None

    def test_managed_fields_cannot_be_assigned(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        store.add_transaction(tx)

        with pytest.raises(InvalidEntityStateError):
            updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"modified_by": "x"})])

    def test_failed_save_rolls_back(self, make_transaction, clock) -> None:
        failing = Mock()
        failing.save.side_effect = OSError("disk full")
        updater = WorkflowUpdater(store=failing, clock=clock)
        tx = make_transaction()
        tx.workflow.action_id = 3
        tx.workflow.comments = "old"

        with pytest.raises(PersistenceError) as excinfo:
            updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 0}, message="closing")])

        assert excinfo.value.transaction_id == tx.transaction_id
        assert tx.workflow.action_id == 3
        assert tx.workflow.action_done is None
        assert tx.workflow.comments == "old"
        assert tx.workflow.modified_at is None

    def test_without_store_changes_stay_in_memory(self, make_transaction, clock) -> None:
        tx = make_transaction()

        WorkflowUpdater(clock=clock).commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"assignee": "carol"})])

        assert tx.workflow.assignee == "carol"

    def test_preview_does_not_touch_original(self, updater, store, make_transaction) -> None:
        tx = make_transaction()
        store.add_transaction(tx)

        draft = updater.preview(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 4})])

        assert draft.workflow.action_id == 4
        assert tx.workflow.action_id is None
        assert store.persisted_workflow(tx.transaction_id).action_id is None

    def test_rule_audit_logged(self, updater, store, make_transaction, caplog) -> None:
        tx = make_transaction()
        store.add_transaction(tx)

        with caplog.at_level("INFO", logger="reco_engine.rules.audit"):
            updater.apply_rule(tx, _result("R5", action_id=4), ChangeSource.IMPORT_RULE)

        assert any("R5" in r.getMessage() for r in caplog.records)


class TestGuardedReEvaluation:
    """A rule guarded on an unset action does not fire again after a manual edit."""

    def test_manual_action_survives_reimport(self, store, make_transaction) -> None:
        current = {"now": datetime(2024, 3, 14, 8, 0)}
        updater = WorkflowUpdater(store=store, clock=lambda: current["now"])
        engine = RulesEngine([Rule("R1", current_action_id=NULL, outputs=RuleOutputs(action_id=7))])
        tx = make_transaction()
        store.add_transaction(tx)

        def evaluate() -> RuleEvaluationResult | None:
            ctx = RuleContext(
                transaction_id=tx.transaction_id,
                account_side=tx.side,
                current_action_id=tx.workflow.action_id,
                current_action_done=tx.workflow.action_done,
            )
            return engine.evaluate(ctx, TriggerContext.IMPORT)

        first = evaluate()
        assert first is not None
        updater.apply_rule(tx, first, ChangeSource.IMPORT_RULE)
        assert tx.workflow.action_id == 7
        assert tx.workflow.action_date == datetime(2024, 3, 14, 8, 0)

        current["now"] = datetime(2024, 3, 14, 10, 0)
        updater.commit(tx, [WorkflowChange(ChangeSource.MANUAL, {"action_id": 4}, user="alice")])

        current["now"] = datetime(2024, 3, 15, 8, 0)
        assert evaluate() is None
        assert tx.workflow.action_id == 4
        assert tx.workflow.action_date == datetime(2024, 3, 14, 10, 0)
