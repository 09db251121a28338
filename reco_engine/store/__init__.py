"""Ledger and billing stores."""

from reco_engine.store.ledger import LedgerStore
from reco_engine.store.snapshot import BillingSnapshot, normalize_reference

__all__ = ["BillingSnapshot", "LedgerStore", "normalize_reference"]
