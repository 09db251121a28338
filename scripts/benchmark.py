#!/usr/bin/env python3
"""Benchmark the reconciliation pipeline.

Measures:
- Synthetic data generation rate
- Import throughput (register, resolve, group, rules)
- Edit throughput with incremental regrouping
- Memory usage at different scales

Usage:
    python scripts/benchmark.py
    python scripts/benchmark.py --scale 10000
    python scripts/benchmark.py --edits 500
"""

import argparse
import logging
import sys
import time
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from reco_engine.generators import DailyImportScenario, ScenarioData
from reco_engine.processing import EditProcessor, ImportProcessor
from reco_engine.rules import RulesEngine, default_rules
from reco_engine.store import BillingSnapshot, LedgerStore

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def get_memory_mb() -> float:
    """Get peak process memory usage in MB (0.0 where unsupported)."""
    try:
        import resource
    except ImportError:
        return 0.0
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return usage.ru_maxrss / 1024  # Linux reports kilobytes


def benchmark_generation(num_invoices: int, seed: int) -> ScenarioData:
    """Benchmark synthetic data generation speed."""
    t0 = time.perf_counter()
    data = DailyImportScenario(num_invoices=num_invoices, seed=seed).generate()
    elapsed = time.perf_counter() - t0
    total = len(data.billing) + len(data.transactions)
    print(f"  Billing:       {len(data.billing):>8,}")
    print(f"  Ledger lines:  {len(data.transactions):>8,}")
    print(f"  Generated {total:,} records in {elapsed:.2f}s  ({total / max(elapsed, 0.001):,.0f}/sec)")
    return data


def benchmark_import(data: ScenarioData, engine: RulesEngine) -> LedgerStore:
    """Benchmark one full import run."""
    store = data.new_store()
    processor = ImportProcessor(engine, BillingSnapshot(data.billing), store)

    t0 = time.perf_counter()
    report = processor.run(data.transactions)
    elapsed = time.perf_counter() - t0
    rate = report.processed / max(elapsed, 0.001)
    print(f"  Imported {report.processed:,} lines in {elapsed:.2f}s  ({rate:,.0f}/sec)")
    for key, value in report.summary().items():
        print(f"    {key:<22} {value}")

    # Second run: every line is a re-import
    t0 = time.perf_counter()
    again = processor.run(data.transactions)
    elapsed = time.perf_counter() - t0
    print(f"  Re-imported {again.reimported_lines:,} lines in {elapsed:.2f}s")
    return store


def benchmark_edits(data: ScenarioData, engine: RulesEngine, store: LedgerStore, num_edits: int) -> None:
    """Benchmark manual edits with edit rules and incremental regrouping."""
    editor = EditProcessor(engine, BillingSnapshot(data.billing), store)
    targets = store.active_transactions()[:num_edits]
    if not targets:
        print("  No transactions to edit")
        return

    t0 = time.perf_counter()
    for transaction in targets:
        editor.apply_edit(transaction.transaction_id, {"action_done": True}, user="benchmark")
    elapsed = time.perf_counter() - t0
    print(f"  Edited {len(targets):,} lines in {elapsed:.2f}s  ({len(targets) / max(elapsed, 0.001):,.0f}/sec)")


def main() -> None:
    """Run benchmarks."""
    parser = argparse.ArgumentParser(description="Benchmark reco-engine performance")
    parser.add_argument("--scale", type=int, default=1000, help="Number of invoices (default: 1000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--edits", type=int, default=200, help="Number of manual edits (default: 200)")
    args = parser.parse_args()

    print("=" * 60)
    print(f"  reco-engine Benchmark  |  scale={args.scale:,}  seed={args.seed}")
    print("=" * 60)

    mem_before = get_memory_mb()
    engine = RulesEngine(default_rules())

    print("\n[1] Data Generation")
    data = benchmark_generation(args.scale, args.seed)

    print("\n[2] Import")
    store = benchmark_import(data, engine)

    print("\n[3] Edits")
    benchmark_edits(data, engine, store, args.edits)

    mem_after = get_memory_mb()
    print(f"\n  Memory: {mem_after:.1f} MB (delta: +{mem_after - mem_before:.1f} MB)")
    print(f"  Store: {store.summary()}")

    print("\n" + "=" * 60)
    print("  Benchmark complete")
    print("=" * 60)


if __name__ == "__main__":
    main()
