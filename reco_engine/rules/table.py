"""Rule table serialization and administration.

Rules live in a JSON document: either a list of rule objects or an object
with a ``"rules"`` list. Absent predicates and ``"*"`` are wildcards;
JSON ``null`` on a guard means "must currently be unset". Example::

    {
      "rule_id": "Pivot - Payment Debit",
      "scope": "IMPORT",
      "account_side": "PIVOT",
      "transaction_types": ["PAYMENT"],
      "sign": "D",
      "current_action_id": null,
      "outputs": {"action_id": 13, "kpi_id": 21}
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable

from reco_engine.exceptions import RuleTableError
from reco_engine.models.enums import AccountSide, ApplyTarget, RuleScope
from reco_engine.models.rule import ANY, NULL, DayRange, Match, Rule, RuleOutputs
from reco_engine.rules.engine import normalize_guarantee_type, normalize_transaction_type

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).with_name("default_rules.json")

_SIDE_ALIASES = {"P": AccountSide.PIVOT, "R": AccountSide.RECEIVABLE}

_BOOL_PREDICATES = (
    "has_billing_link",
    "is_grouped",
    "is_amount_match",
    "mt_acked",
    "comm_id_email",
    "invoice_initiated",
    "trigger_date_is_null",
    "is_first_request",
    "is_first_occurrence",
    "current_action_done",
)
_SET_PREDICATES: dict[str, Callable[[str | None], str | None]] = {
    "transaction_types": normalize_transaction_type,
    "guarantee_types": normalize_guarantee_type,
    "bookings": lambda v: v.strip().upper() if v and v.strip() else None,
}
_RANGE_PREDICATES = ("operation_days_ago", "days_since_reminder", "days_since_trigger")
_INT_OUTPUTS = ("action_id", "kpi_id", "incident_type_id", "reason_non_risky_id", "to_remind_days")
_BOOL_OUTPUTS = ("risky_item", "to_remind", "first_claim_today")

_KNOWN_KEYS = (
    {
        "rule_id",
        "enabled",
        "priority",
        "scope",
        "account_side",
        "sign",
        "current_action_id",
        "outputs",
        "apply_to",
        "auto_apply",
        "message",
        "description",
    }
    | set(_BOOL_PREDICATES)
    | set(_SET_PREDICATES)
    | set(_RANGE_PREDICATES)
)


def _is_wildcard(value: Any) -> bool:
    return isinstance(value, str) and value.strip() in ("", "*")


class _RuleParser:
    """Parse one rule mapping, reporting errors with rule position and id."""

    def __init__(self, data: dict[str, Any], index: int) -> None:
        self.data = data
        self.index = index
        self.rule_id = str(data.get("rule_id") or "").strip()

    def error(self, field_name: str, problem: str) -> RuleTableError:
        label = f"rule #{self.index}" + (f" ({self.rule_id!r})" if self.rule_id else "")
        return RuleTableError(f"{label}: field {field_name!r} {problem}")

    def enum(self, field_name: str, enum_cls: type, default: Any) -> Any:
        raw = self.data.get(field_name)
        if raw is None:
            return default
        try:
            return enum_cls(str(raw).strip().upper())
        except ValueError:
            raise self.error(field_name, f"has unknown value {raw!r}") from None

    def integer(self, field_name: str, raw: Any) -> int:
        if isinstance(raw, bool) or not isinstance(raw, (int, str)):
            raise self.error(field_name, f"must be an integer, got {raw!r}")
        try:
            return int(raw)
        except ValueError:
            raise self.error(field_name, f"must be an integer, got {raw!r}") from None

    def boolean(self, field_name: str, raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
            return raw.strip().lower() == "true"
        raise self.error(field_name, f"must be a boolean, got {raw!r}")

    def bool_predicate(self, field_name: str) -> bool | Match:
        if field_name not in self.data:
            return ANY
        raw = self.data[field_name]
        if raw is None:
            return NULL
        if _is_wildcard(raw):
            return ANY
        return self.boolean(field_name, raw)

    def set_predicate(self, field_name: str) -> frozenset[str] | Match:
        raw = self.data.get(field_name)
        if raw is None or _is_wildcard(raw):
            return ANY
        if isinstance(raw, str):
            items = raw.replace(",", ";").replace("|", ";").split(";")
        elif isinstance(raw, list):
            items = [str(item) for item in raw]
        else:
            raise self.error(field_name, f"must be a list or a ';' separated string, got {raw!r}")
        normalize = _SET_PREDICATES[field_name]
        values = frozenset(v for v in (normalize(item) for item in items) if v)
        if not values:
            raise self.error(field_name, "is empty")
        return values

    def range_predicate(self, field_name: str) -> DayRange | None:
        raw = self.data.get(field_name)
        if raw is None:
            return None
        if not isinstance(raw, dict) or not set(raw) <= {"min", "max"}:
            raise self.error(field_name, "must be an object with 'min' and/or 'max'")
        low = None if raw.get("min") is None else self.integer(field_name, raw["min"])
        high = None if raw.get("max") is None else self.integer(field_name, raw["max"])
        if low is not None and high is not None and low > high:
            raise self.error(field_name, f"has min {low} greater than max {high}")
        return DayRange(low, high)

    def account_side(self) -> AccountSide | Match:
        raw = self.data.get("account_side")
        if raw is None or _is_wildcard(raw):
            return ANY
        text = str(raw).strip().upper()
        if text in _SIDE_ALIASES:
            return _SIDE_ALIASES[text]
        try:
            return AccountSide(text)
        except ValueError:
            raise self.error("account_side", f"has unknown value {raw!r}") from None

    def sign(self) -> str | Match:
        raw = self.data.get("sign")
        if raw is None or _is_wildcard(raw):
            return ANY
        text = str(raw).strip().upper()
        if text not in ("C", "D"):
            raise self.error("sign", f"must be 'C', 'D' or '*', got {raw!r}")
        return text

    def current_action_id(self) -> int | Match:
        if "current_action_id" not in self.data:
            return ANY
        raw = self.data["current_action_id"]
        if raw is None:
            return NULL
        if _is_wildcard(raw):
            return ANY
        return self.integer("current_action_id", raw)

    def outputs(self) -> RuleOutputs:
        raw = self.data.get("outputs") or {}
        if not isinstance(raw, dict):
            raise self.error("outputs", "must be an object")
        unknown = set(raw) - set(_INT_OUTPUTS) - set(_BOOL_OUTPUTS)
        if unknown:
            raise self.error("outputs", f"has unknown keys {sorted(unknown)}")
        values: dict[str, Any] = {}
        for name in _INT_OUTPUTS:
            if raw.get(name) is not None:
                values[name] = self.integer(f"outputs.{name}", raw[name])
        for name in _BOOL_OUTPUTS:
            if raw.get(name) is not None:
                values[name] = self.boolean(f"outputs.{name}", raw[name])
        return RuleOutputs(**values)

    def parse(self) -> Rule:
        if not self.rule_id:
            raise self.error("rule_id", "is missing")
        unknown = set(self.data) - _KNOWN_KEYS
        if unknown:
            raise self.error(sorted(unknown)[0], "is not a rule field")

        message = self.data.get("message")
        if message is not None and not isinstance(message, str):
            raise self.error("message", "must be a string")

        return Rule(
            rule_id=self.rule_id,
            scope=self.enum("scope", RuleScope, RuleScope.BOTH),
            enabled=self.boolean("enabled", self.data.get("enabled", True)),
            priority=self.integer("priority", self.data.get("priority", 100)),
            account_side=self.account_side(),
            sign=self.sign(),
            current_action_id=self.current_action_id(),
            outputs=self.outputs(),
            apply_to=self.enum("apply_to", ApplyTarget, ApplyTarget.SELF),
            auto_apply=self.boolean("auto_apply", self.data.get("auto_apply", True)),
            message=message.strip() if message and message.strip() else None,
            **{name: self.bool_predicate(name) for name in _BOOL_PREDICATES},
            **{name: self.set_predicate(name) for name in _SET_PREDICATES},
            **{name: self.range_predicate(name) for name in _RANGE_PREDICATES},
        )


def rules_from_dicts(items: Iterable[dict[str, Any]]) -> list[Rule]:
    """Build rules from parsed JSON objects.

    Raises
    ------
    RuleTableError
        When a rule is malformed or two rules share an id.
    """
    rules: list[Rule] = []
    seen: dict[str, int] = {}
    for index, data in enumerate(items):
        if not isinstance(data, dict):
            raise RuleTableError(f"rule #{index}: expected an object, got {type(data).__name__}")
        rule = _RuleParser(data, index).parse()
        key = rule.rule_id.casefold()
        if key in seen:
            raise RuleTableError(
                f"rule #{index} ({rule.rule_id!r}): duplicate rule id (first seen at rule #{seen[key]})"
            )
        seen[key] = index
        rules.append(rule)
    return rules


def load_rules(path: str | Path) -> list[Rule]:
    """Load a rule table from a JSON file."""
    file_path = Path(path)
    try:
        with open(file_path, encoding="utf-8") as f:
            document = json.load(f)
    except OSError as exc:
        raise RuleTableError(f"Cannot read rule table {file_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise RuleTableError(f"Rule table {file_path} is not valid JSON: {exc}") from exc

    items = document.get("rules") if isinstance(document, dict) else document
    if not isinstance(items, list):
        raise RuleTableError(f"Rule table {file_path} must contain a list of rules")

    rules = rules_from_dicts(items)
    logger.info("Loaded %d rules from %s", len(rules), file_path)
    return rules


def default_rules() -> list[Rule]:
    """The packaged seed rule table."""
    return load_rules(DEFAULT_RULES_PATH)


def _predicate_to_json(value: Any) -> Any:
    if value is ANY:
        return "*"
    if value is NULL:
        return None
    if isinstance(value, frozenset):
        return sorted(value)
    if isinstance(value, AccountSide):
        return value.value
    return value


def rule_to_dict(rule: Rule) -> dict[str, Any]:
    """JSON-ready representation of a rule; wildcards are omitted."""
    data: dict[str, Any] = {
        "rule_id": rule.rule_id,
        "enabled": rule.enabled,
        "priority": rule.priority,
        "scope": rule.scope.value,
    }
    for name in ("account_side", "sign", "current_action_id", *_BOOL_PREDICATES, *_SET_PREDICATES):
        value = getattr(rule, name)
        if value is not ANY:
            data[name] = _predicate_to_json(value)
    for name in _RANGE_PREDICATES:
        bounds = getattr(rule, name)
        if bounds is not None:
            data[name] = {"min": bounds.min_days, "max": bounds.max_days}
    data["outputs"] = rule.outputs.assigned()
    data["apply_to"] = rule.apply_to.value
    data["auto_apply"] = rule.auto_apply
    if rule.message:
        data["message"] = rule.message
    return data


def dump_rules(rules: Iterable[Rule], path: str | Path, pretty: bool = True) -> None:
    """Write rules to a JSON file."""
    document = {"rules": [rule_to_dict(rule) for rule in rules]}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2 if pretty else None, ensure_ascii=False)
        f.write("\n")


class RuleTable:
    """Editable rule table backing a rules engine.

    Parameters
    ----------
    rules : Iterable[Rule]
        Initial rules.
    path : str | Path | None
        File the table is saved to.
    """

    def __init__(self, rules: Iterable[Rule] = (), path: str | Path | None = None) -> None:
        self.path = Path(path) if path else None
        self._rules: dict[str, Rule] = {}
        for rule in rules:
            self.upsert(rule)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "RuleTable":
        """Load a table from ``path`` or the packaged defaults."""
        source = Path(path) if path else DEFAULT_RULES_PATH
        return cls(load_rules(source), path=path)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id.casefold() in self._rules

    def get(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id.casefold())

    def rules(self) -> list[Rule]:
        return sorted(self._rules.values(), key=lambda r: r.sort_key)

    def upsert(self, rule: Rule) -> None:
        """Insert or replace a rule by id."""
        self._rules[rule.rule_id.casefold()] = rule

    def delete(self, rule_id: str) -> bool:
        """Remove a rule; returns False when it did not exist."""
        return self._rules.pop(rule_id.casefold(), None) is not None

    def save(self, path: str | Path | None = None) -> Path:
        target = Path(path) if path else self.path
        if target is None:
            raise RuleTableError("No path to save the rule table to")
        dump_rules(self.rules(), target)
        logger.info("Saved %d rules to %s", len(self._rules), target)
        return target
