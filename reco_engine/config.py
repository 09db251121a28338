"""Configuration management for reco-engine."""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

from reco_engine.exceptions import ConfigurationError

# Action id that means "not applicable"; assigning it closes the item.
NA_ACTION_ID = 0

# Action id given to new lines that no import rule handled ("investigate").
FALLBACK_ACTION_ID = 7


@dataclass
class ResolverConfig:
    """Billing reference resolution settings."""

    amount_tolerance: Decimal = Decimal("0.01")
    ready_status: str = "GENERATED"
    link_suggestions: bool = True


@dataclass
class WorkflowConfig:
    """Workflow state update settings."""

    na_action_id: int = NA_ACTION_ID
    fallback_action_id: int | None = FALLBACK_ACTION_ID
    fallback_message: str = "New line set to INVESTIGATE - no matching rule found"
    current_user: str = "system"


@dataclass
class RuleTableConfig:
    """Where the rule table is loaded from.

    ``path=None`` means the packaged default table.
    """

    path: Path | None = None


@dataclass
class OutputConfig:
    """Output configuration."""

    json_output_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False


@dataclass
class EngineConfig:
    """Main configuration for reco-engine."""

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    rules: RuleTableConfig = field(default_factory=RuleTableConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        import os
        from decimal import InvalidOperation

        try:
            tolerance = Decimal(os.getenv("RECO_AMOUNT_TOLERANCE", "0.01"))
        except InvalidOperation as exc:
            raise ConfigurationError(
                f"RECO_AMOUNT_TOLERANCE is not a number: {os.getenv('RECO_AMOUNT_TOLERANCE')!r}"
            ) from exc

        resolver = ResolverConfig(
            amount_tolerance=tolerance,
            ready_status=os.getenv("RECO_READY_STATUS", "GENERATED").upper(),
            link_suggestions=os.getenv("RECO_LINK_SUGGESTIONS", "true").lower() == "true",
        )

        fallback = os.getenv("RECO_FALLBACK_ACTION_ID", str(FALLBACK_ACTION_ID))
        try:
            workflow = WorkflowConfig(
                na_action_id=int(os.getenv("RECO_NA_ACTION_ID", str(NA_ACTION_ID))),
                fallback_action_id=int(fallback) if fallback else None,
                current_user=os.getenv("RECO_USER", "system"),
            )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid workflow action id: {exc}") from exc

        rules_path = os.getenv("RECO_RULES_PATH")
        rules = RuleTableConfig(path=Path(rules_path) if rules_path else None)

        output = OutputConfig(
            json_output_dir=Path(os.getenv("OUTPUT_DIR", "output")),
            pretty_json=os.getenv("PRETTY_JSON", "false").lower() == "true",
        )

        return cls(
            resolver=resolver,
            workflow=workflow,
            rules=rules,
            output=output,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
