#!/usr/bin/env python3
"""Run one ledger extract through the reconciliation engine.

Reads ledger lines and billing records from JSON files, resolves
references, computes grouping KPIs, applies the rule table and writes
the processed transactions plus a batch report as JSON.

Usage:
    python scripts/run_reconciliation.py --transactions ledger.json --billing billing.json
    python scripts/run_reconciliation.py --demo 200 --seed 42 --output-dir output
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from reco_engine.config import EngineConfig
from reco_engine.exceptions import RecoEngineError
from reco_engine.generators import DailyImportScenario
from reco_engine.logging import setup_logging
from reco_engine.models import BillingRecord, Transaction
from reco_engine.processing import ImportProcessor
from reco_engine.rules import RulesEngine, RuleTable
from reco_engine.sinks import JsonFileSink
from reco_engine.store import BillingSnapshot, LedgerStore

logger = logging.getLogger(__name__)


def read_rows(path: Path) -> list[dict]:
    """Read a JSON array of objects."""
    with open(path, encoding="utf-8") as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        raise ValueError(f"{path} must contain a JSON array")
    return rows


def load_inputs(args: argparse.Namespace) -> tuple[list[Transaction], list[BillingRecord], LedgerStore]:
    """Build transactions, billing records and an account-aware store."""
    if args.demo:
        data = DailyImportScenario(num_invoices=args.demo, seed=args.seed).generate()
        return data.transactions, data.billing, data.new_store()

    transactions = [Transaction.from_raw(row) for row in read_rows(args.transactions)]
    billing = [BillingRecord.from_raw(row) for row in read_rows(args.billing)] if args.billing else []

    store = LedgerStore()
    for transaction in transactions:
        if transaction.account_id not in store.accounts:
            store.add_account(transaction.account_id, transaction.side)
    return transactions, billing, store


def main() -> int:
    """Run the reconciliation."""
    parser = argparse.ArgumentParser(description="Reconcile a ledger extract against billing records")
    parser.add_argument("--transactions", type=Path, help="Ledger lines JSON file")
    parser.add_argument("--billing", type=Path, help="Billing records JSON file")
    parser.add_argument("--rules", type=Path, help="Rule table JSON (default: packaged rules)")
    parser.add_argument("--demo", type=int, default=0, help="Generate N synthetic invoices instead of reading files")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for --demo (default: 42)")
    parser.add_argument("--full-extract", action="store_true", help="Soft-delete stored lines missing from the extract")
    parser.add_argument("--output-dir", type=Path, help="Output directory (default: OUTPUT_DIR or ./output)")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    parser.add_argument("--log-format", choices=["standard", "json"], default="standard", help="Log format")
    parser.add_argument("--audit-level", help="Level of the rule audit log (defaults to the log level)")
    args = parser.parse_args()

    if not args.demo and not args.transactions:
        parser.error("--transactions is required unless --demo is given")

    try:
        config = EngineConfig.from_env()
    except RecoEngineError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_level, args.log_format, audit_level=args.audit_level)

    try:
        table = RuleTable.load(args.rules or config.rules.path)
        transactions, billing, store = load_inputs(args)
    except (RecoEngineError, OSError, ValueError) as e:
        logger.error("Could not load inputs: %s", e)
        return 1

    processor = ImportProcessor(RulesEngine(table.rules()), BillingSnapshot(billing), store, config=config)
    report = processor.run(transactions, full_extract=args.full_extract)

    sink = JsonFileSink(args.output_dir or config.output.json_output_dir, pretty=args.pretty or config.output.pretty_json)
    try:
        sink.write_batch("transactions", store.active_transactions())
        sink.write_batch("failures", report.failures)
        sink.write_report("report", report)
    except RecoEngineError as e:
        logger.error("Could not write output: %s", e)
        return 1
    finally:
        sink.close()

    return 0 if report.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
