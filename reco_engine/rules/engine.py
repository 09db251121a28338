"""Rule table evaluation."""

import logging
from dataclasses import replace
from typing import Any, Iterable

from reco_engine.models.enums import TriggerContext
from reco_engine.models.rule import ANY, NULL, DayRange, Rule, RuleContext, RuleEvaluationResult

logger = logging.getLogger(__name__)


def normalize_sign(value: str | None) -> str | None:
    if not value or not value.strip():
        return None
    text = value.strip().upper()
    if text.startswith("D"):
        return "D"
    if text.startswith("C"):
        return "C"
    return text


def normalize_guarantee_type(value: str | None) -> str | None:
    """Map guarantee type spellings onto ISSUANCE/REISSUANCE/ADVISING."""
    if not value or not value.strip():
        return None
    text = value.strip().upper()
    if text.startswith("REISSU"):
        return "REISSUANCE"
    if text.startswith("ISSU"):
        return "ISSUANCE"
    if text.startswith("NOTIF") or text.startswith("ADVISING"):
        return "ADVISING"
    return text


def normalize_transaction_type(value: str | None) -> str | None:
    if not value or not value.strip():
        return None
    return value.strip().upper().replace(" ", "_")


def normalize_context(ctx: RuleContext) -> RuleContext:
    """Canonical spelling of the free-text context attributes."""
    return replace(
        ctx,
        sign=normalize_sign(ctx.sign),
        guarantee_type=normalize_guarantee_type(ctx.guarantee_type),
        transaction_type=normalize_transaction_type(ctx.transaction_type),
        booking=ctx.booking.strip().upper() if ctx.booking and ctx.booking.strip() else None,
    )


def _value_matches(predicate: Any, value: Any) -> bool:
    if predicate is ANY:
        return True
    if predicate is NULL:
        return value is None
    return value is not None and value == predicate


def _set_matches(predicate: Any, value: str | None) -> bool:
    if predicate is ANY:
        return True
    if predicate is NULL:
        return value is None
    return value is not None and value in predicate


def _range_matches(bounds: DayRange | None, days: int | None) -> bool:
    return bounds is None or bounds.contains(days)


def rule_matches(rule: Rule, ctx: RuleContext) -> bool:
    """True when every non-wildcard predicate of ``rule`` holds for ``ctx``.

    A set predicate on an attribute the context does not know fails.
    ``ctx`` is expected to be normalised.
    """
    return (
        _value_matches(rule.account_side, ctx.account_side)
        and _set_matches(rule.bookings, ctx.booking)
        and _set_matches(rule.guarantee_types, ctx.guarantee_type)
        and _set_matches(rule.transaction_types, ctx.transaction_type)
        and _value_matches(rule.has_billing_link, ctx.has_billing_link)
        and _value_matches(rule.is_grouped, ctx.is_grouped)
        and _value_matches(rule.is_amount_match, ctx.is_amount_match)
        and _value_matches(rule.sign, ctx.sign)
        and _value_matches(rule.mt_acked, ctx.mt_acked)
        and _value_matches(rule.comm_id_email, ctx.comm_id_email)
        and _value_matches(rule.invoice_initiated, ctx.invoice_initiated)
        and _value_matches(rule.trigger_date_is_null, ctx.trigger_date_is_null)
        and _range_matches(rule.days_since_trigger, ctx.days_since_trigger)
        and _range_matches(rule.operation_days_ago, ctx.operation_days_ago)
        and _value_matches(rule.is_first_request, ctx.is_first_request)
        and _range_matches(rule.days_since_reminder, ctx.days_since_reminder)
        and _value_matches(rule.is_first_occurrence, ctx.is_first_occurrence)
        and _value_matches(rule.current_action_id, ctx.current_action_id)
        and _value_matches(rule.current_action_done, ctx.current_action_done)
    )


class RulesEngine:
    """Select the single best rule for a transaction.

    Enabled rules are ordered once by priority (lower first), then by rule
    id compared case-insensitively. The first rule whose scope includes
    the trigger and whose predicates all hold wins. The engine never
    mutates state.

    Parameters
    ----------
    rules : Iterable[Rule]
        Rule table rows; disabled rows are ignored.
    """

    def __init__(self, rules: Iterable[Rule]) -> None:
        self._rules: list[Rule] = sorted((r for r in rules if r.enabled), key=lambda r: r.sort_key)
        logger.debug("Rules engine loaded with %d enabled rules", len(self._rules))

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def matching_rules(self, ctx: RuleContext, trigger: TriggerContext) -> list[Rule]:
        """Every rule matching ``ctx`` in selection order."""
        normalized = normalize_context(ctx)
        return [
            rule
            for rule in self._rules
            if rule.scope.includes(trigger) and rule_matches(rule, normalized)
        ]

    def evaluate(self, ctx: RuleContext, trigger: TriggerContext) -> RuleEvaluationResult | None:
        """Evaluate the rule table for one transaction snapshot.

        Parameters
        ----------
        ctx : RuleContext
            Transaction attributes, resolved billing attributes and the
            workflow state as it was before this evaluation.
        trigger : TriggerContext
            Import or Edit.

        Returns
        -------
        RuleEvaluationResult | None
            Selected rule with its outputs, or None when nothing matches.
        """
        normalized = normalize_context(ctx)
        for rule in self._rules:
            if not rule.scope.includes(trigger):
                continue
            if not rule_matches(rule, normalized):
                continue
            logger.debug(
                "Rule %s matched transaction %s (%s)",
                rule.rule_id,
                ctx.transaction_id,
                trigger.value,
            )
            return RuleEvaluationResult(rule=rule, outputs=rule.outputs, message=rule.message)
        return None
