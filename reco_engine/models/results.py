"""Result types produced by token extraction and reference resolution."""

from dataclasses import dataclass

from reco_engine.models.billing import BillingRecord
from reco_engine.models.enums import MatchStep


@dataclass(frozen=True)
class ExtractedTokens:
    """At most one reference token of each kind."""

    invoice: str | None = None  # Kind-1, BGI...
    payment_reference: str | None = None  # Kind-2, BGPMT...
    guarantee: str | None = None  # Kind-3, G...

    def __bool__(self) -> bool:
        return bool(self.invoice or self.payment_reference or self.guarantee)


@dataclass(frozen=True)
class ReferenceLinks:
    """Billing references to write back onto a transaction."""

    invoice_id: str | None = None
    payment_reference_id: str | None = None
    guarantee_id: str | None = None


@dataclass(frozen=True)
class ResolutionResult:
    """Billing record chosen for a transaction and how it was found."""

    record: BillingRecord
    step: MatchStep
    tokens: ExtractedTokens
    candidate_count: int = 1

    @property
    def is_suggestion(self) -> bool:
        return self.step is MatchStep.SUGGESTION
