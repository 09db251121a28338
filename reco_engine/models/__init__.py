"""Domain models for ledger reconciliation."""

from reco_engine.models.billing import BillingRecord
from reco_engine.models.enums import (
    AccountSide,
    ApplyTarget,
    ChangeSource,
    InvoiceStatus,
    MatchStep,
    RuleScope,
    TokenKind,
    TransactionType,
    TriggerContext,
)
from reco_engine.models.results import ExtractedTokens, ReferenceLinks, ResolutionResult
from reco_engine.models.rule import (
    ANY,
    NULL,
    DayRange,
    Match,
    Rule,
    RuleContext,
    RuleEvaluationResult,
    RuleOutputs,
)
from reco_engine.models.transaction import GroupingKpi, Transaction, WorkflowState

__all__ = [
    "ANY",
    "NULL",
    "AccountSide",
    "ApplyTarget",
    "BillingRecord",
    "ChangeSource",
    "DayRange",
    "ExtractedTokens",
    "GroupingKpi",
    "InvoiceStatus",
    "Match",
    "MatchStep",
    "ReferenceLinks",
    "ResolutionResult",
    "Rule",
    "RuleContext",
    "RuleEvaluationResult",
    "RuleOutputs",
    "RuleScope",
    "TokenKind",
    "Transaction",
    "TransactionType",
    "TriggerContext",
    "WorkflowState",
]
