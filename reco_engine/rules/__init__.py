"""Declarative rule table and its evaluation engine."""

from reco_engine.rules.context import build_rule_context, detect_transaction_type
from reco_engine.rules.engine import RulesEngine, normalize_context, rule_matches
from reco_engine.rules.table import (
    DEFAULT_RULES_PATH,
    RuleTable,
    default_rules,
    dump_rules,
    load_rules,
    rule_to_dict,
    rules_from_dicts,
)

__all__ = [
    "DEFAULT_RULES_PATH",
    "RuleTable",
    "RulesEngine",
    "build_rule_context",
    "default_rules",
    "detect_transaction_type",
    "dump_rules",
    "load_rules",
    "normalize_context",
    "rule_matches",
    "rule_to_dict",
    "rules_from_dicts",
]
