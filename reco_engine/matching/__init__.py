"""Reference token extraction and billing resolution."""

from reco_engine.matching.resolver import ReferenceResolver, link_references, transaction_date
from reco_engine.matching.tokens import (
    TOKEN_PATTERNS,
    extract_tokens,
    find_all_tokens,
    find_token,
    split_reference_tokens,
)

__all__ = [
    "TOKEN_PATTERNS",
    "ReferenceResolver",
    "extract_tokens",
    "find_all_tokens",
    "find_token",
    "link_references",
    "split_reference_tokens",
    "transaction_date",
]
