"""Structured logging configuration for reco-engine."""

import logging
import sys
from typing import Any

RULE_AUDIT_LOGGER = "reco_engine.rules.audit"


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
    audit_level: str | None = None,
) -> None:
    """Configure logging for reco-engine.

    Parameters
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    format_type : str
        Format type: "standard" or "json".
    audit_level : str | None
        Level of the rule audit logger; follows ``level`` when None.
        Set to WARNING to silence per-rule records on large imports.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Pick formatter
    if format_type == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Drop handlers left by a previous call
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Single console handler on stdout
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Engine and audit loggers
    logging.getLogger("reco_engine").setLevel(log_level)
    audit = getattr(logging, audit_level.upper(), log_level) if audit_level else log_level
    logging.getLogger(RULE_AUDIT_LOGGER).setLevel(audit)

    # Faker logs locale lookups at DEBUG
    logging.getLogger("faker").setLevel(logging.WARNING)


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        import json
        from datetime import datetime, timezone

        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Traceback of logger.exception calls
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Structured fields, e.g. rule audit records
        if hasattr(record, "extra"):
            log_data.update(record.extra)

        # Decimals and dates in rule outputs
        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Parameters
    ----------
    name : str
        Logger name (usually __name__).

    Returns
    -------
    logging.Logger
        Configured logger.
    """
    return logging.getLogger(name)


def log_rule_applied(
    origin: str,
    transaction_id: str,
    rule_id: str,
    outputs: dict[str, Any],
    message: str | None = None,
) -> None:
    """Write one audit record for a rule application.

    Parameters
    ----------
    origin : str
        Where the rule fired ("import", "edit", "counterpart").
    transaction_id : str
        Transaction the outputs were applied to.
    rule_id : str
        Identifier of the applied rule.
    outputs : dict[str, Any]
        Workflow fields assigned by the rule.
    message : str | None
        User-facing rule message, if any.
    """
    assigned = ", ".join(f"{k}={v}" for k, v in sorted(outputs.items()))
    logging.getLogger(RULE_AUDIT_LOGGER).info(
        "[%s] rule %s applied to %s: %s%s",
        origin,
        rule_id,
        transaction_id,
        assigned or "no outputs",
        f" | {message}" if message else "",
        extra={
            "extra": {
                "origin": origin,
                "transaction_id": transaction_id,
                "rule_id": rule_id,
                "outputs": outputs,
            }
        },
    )
