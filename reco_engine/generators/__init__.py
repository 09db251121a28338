"""Synthetic billing and ledger data for demos, benchmarks and tests."""

from reco_engine.generators.billing import BillingRecordGenerator
from reco_engine.generators.ledger import DailyImportScenario, LedgerLineGenerator, ScenarioData

__all__ = ["BillingRecordGenerator", "DailyImportScenario", "LedgerLineGenerator", "ScenarioData"]
