"""Import and edit pipelines."""

from reco_engine.processing.editor import EditOutcome, EditProcessor
from reco_engine.processing.importer import ImportProcessor
from reco_engine.processing.report import BatchReport, TransactionFailure

__all__ = [
    "BatchReport",
    "EditOutcome",
    "EditProcessor",
    "ImportProcessor",
    "TransactionFailure",
]
