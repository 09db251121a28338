"""Declarative rule model.

Every predicate of a ``Rule`` is either ``ANY`` (wildcard, matches
whatever the transaction holds) or a concrete value. The two workflow
guards additionally accept ``NULL``, meaning "the field must currently
be unset".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from reco_engine.models.enums import AccountSide, ApplyTarget, RuleScope


class Match(Enum):
    """Wildcard tags for rule predicates."""

    ANY = "*"
    NULL = "null"

    def __repr__(self) -> str:
        return f"Match.{self.name}"


ANY = Match.ANY
NULL = Match.NULL


@dataclass(frozen=True)
class DayRange:
    """Inclusive day-count bounds; an open bound is None."""

    min_days: int | None = None
    max_days: int | None = None

    def contains(self, days: int | None) -> bool:
        if days is None:
            return False
        if self.min_days is not None and days < self.min_days:
            return False
        if self.max_days is not None and days > self.max_days:
            return False
        return True


@dataclass(frozen=True)
class RuleOutputs:
    """Workflow assignments produced by a rule."""

    action_id: int | None = None
    kpi_id: int | None = None
    incident_type_id: int | None = None
    risky_item: bool | None = None
    reason_non_risky_id: int | None = None
    to_remind: bool | None = None
    to_remind_days: int | None = None
    first_claim_today: bool | None = None

    def assigned(self) -> dict[str, Any]:
        """Outputs that are actually set, keyed by output name."""
        return {
            name: value
            for name, value in (
                ("action_id", self.action_id),
                ("kpi_id", self.kpi_id),
                ("incident_type_id", self.incident_type_id),
                ("risky_item", self.risky_item),
                ("reason_non_risky_id", self.reason_non_risky_id),
                ("to_remind", self.to_remind),
                ("to_remind_days", self.to_remind_days),
                ("first_claim_today", self.first_claim_today),
            )
            if value is not None
        }


@dataclass(frozen=True)
class Rule:
    """One row of the rule table."""

    rule_id: str
    scope: RuleScope = RuleScope.BOTH
    enabled: bool = True
    priority: int = 100

    # Ledger and billing predicates
    account_side: AccountSide | Match = ANY
    transaction_types: frozenset[str] | Match = ANY
    guarantee_types: frozenset[str] | Match = ANY
    bookings: frozenset[str] | Match = ANY
    sign: str | Match = ANY
    has_billing_link: bool | Match = ANY
    is_grouped: bool | Match = ANY
    is_amount_match: bool | Match = ANY
    mt_acked: bool | Match = ANY
    comm_id_email: bool | Match = ANY
    invoice_initiated: bool | Match = ANY
    trigger_date_is_null: bool | Match = ANY
    is_first_request: bool | Match = ANY
    operation_days_ago: DayRange | None = None
    days_since_reminder: DayRange | None = None
    days_since_trigger: DayRange | None = None

    # Guards, checked against the state before evaluation
    is_first_occurrence: bool | Match = ANY
    current_action_id: int | Match = ANY
    current_action_done: bool | Match = ANY

    outputs: RuleOutputs = field(default_factory=RuleOutputs)
    apply_to: ApplyTarget = ApplyTarget.SELF
    auto_apply: bool = True
    message: str | None = None

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.priority, self.rule_id.casefold())


@dataclass(frozen=True)
class RuleContext:
    """Attribute snapshot a rule is evaluated against."""

    transaction_id: str
    account_side: AccountSide
    transaction_type: str | None = None
    guarantee_type: str | None = None
    booking: str | None = None
    sign: str | None = None
    has_billing_link: bool | None = None
    is_grouped: bool | None = None
    is_amount_match: bool | None = None
    mt_acked: bool | None = None
    comm_id_email: bool | None = None
    invoice_initiated: bool | None = None
    trigger_date_is_null: bool | None = None
    is_first_request: bool | None = None
    operation_days_ago: int | None = None
    days_since_reminder: int | None = None
    days_since_trigger: int | None = None
    is_first_occurrence: bool | None = None
    current_action_id: int | None = None
    current_action_done: bool | None = None


@dataclass(frozen=True)
class RuleEvaluationResult:
    """The rule selected for a transaction and what it assigns."""

    rule: Rule
    outputs: RuleOutputs
    message: str | None = None

    @property
    def rule_id(self) -> str:
        return self.rule.rule_id

    @property
    def applies_to_self(self) -> bool:
        return self.rule.apply_to in (ApplyTarget.SELF, ApplyTarget.BOTH)

    @property
    def applies_to_counterpart(self) -> bool:
        return self.rule.apply_to in (ApplyTarget.COUNTERPART, ApplyTarget.BOTH)

    @property
    def requires_confirmation(self) -> bool:
        return not self.rule.auto_apply
