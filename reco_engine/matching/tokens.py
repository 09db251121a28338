"""Reference token extraction from ledger free-text fields.

Three token shapes are recognised:

- invoice (``BGI``): ``BGI`` + 6 digits + 7 hex chars, or
  ``BGI`` + 4 digits + 2-letter country + 7 hex chars
- payment reference (``BGPMT``): ``BGPMT`` + 8 to 20 alphanumerics
- guarantee (``G``): ``G`` + 4 digits + 2 letters + 9 digits

A token never touches another letter or digit on either side. The
prefix is matched all-uppercase or all-lowercase; the body is matched
case-insensitively. Tokens are returned exactly as written.
"""

import re

from reco_engine.models.enums import AccountSide, TokenKind
from reco_engine.models.results import ExtractedTokens
from reco_engine.models.transaction import Transaction

_BEFORE = r"(?<![A-Za-z0-9])"
_AFTER = r"(?![A-Za-z0-9])"

TOKEN_PATTERNS: dict[TokenKind, re.Pattern[str]] = {
    TokenKind.INVOICE: re.compile(
        _BEFORE
        + r"(?:BGI|bgi)(?:\d{6}[0-9A-Fa-f]{7}|\d{4}[A-Za-z]{2}[0-9A-Fa-f]{7})"
        + _AFTER
    ),
    TokenKind.PAYMENT_REFERENCE: re.compile(_BEFORE + r"(?:BGPMT|bgpmt)[A-Za-z0-9]{8,20}" + _AFTER),
    TokenKind.GUARANTEE: re.compile(_BEFORE + r"(?:G|g)\d{4}[A-Za-z]{2}\d{9}" + _AFTER),
}

# Fields scanned for each token kind, in priority order. The first field
# holding a token wins.
FIELD_PRIORITY: dict[tuple[TokenKind, AccountSide], tuple[str, ...]] = {
    # Receivable lines carry the invoice in the reconciliation number only;
    # the explicit invoice column, when the extract has one, comes first.
    (TokenKind.INVOICE, AccountSide.RECEIVABLE): ("invoice_hint", "reconciliation_num"),
    (TokenKind.INVOICE, AccountSide.PIVOT): (
        "raw_label",
        "reconciliation_num",
        "reconciliation_origin_num",
    ),
    (TokenKind.PAYMENT_REFERENCE, AccountSide.RECEIVABLE): (
        "reconciliation_num",
        "reconciliation_origin_num",
        "raw_label",
    ),
    (TokenKind.PAYMENT_REFERENCE, AccountSide.PIVOT): (
        "reconciliation_num",
        "reconciliation_origin_num",
        "raw_label",
    ),
    (TokenKind.GUARANTEE, AccountSide.RECEIVABLE): ("reconciliation_num", "raw_label"),
    (TokenKind.GUARANTEE, AccountSide.PIVOT): ("reconciliation_num", "raw_label"),
}

# Broadened field list used by the suggestion pass.
ALL_TEXT_FIELDS: tuple[str, ...] = (
    "invoice_hint",
    "reconciliation_num",
    "reconciliation_origin_num",
    "raw_label",
)

_ALNUM_RUN = re.compile(r"[A-Za-z0-9]+")


def find_token(kind: TokenKind, text: str | None) -> str | None:
    """Return the first token of ``kind`` in ``text``, or None."""
    if not text:
        return None
    match = TOKEN_PATTERNS[kind].search(text)
    return match.group(0) if match else None


def find_all_tokens(kind: TokenKind, text: str | None) -> list[str]:
    """Return every token of ``kind`` in ``text``, in order of appearance."""
    if not text:
        return []
    return TOKEN_PATTERNS[kind].findall(text)


def _scan(transaction: Transaction, kind: TokenKind, field_names: tuple[str, ...]) -> str | None:
    for name in field_names:
        token = find_token(kind, getattr(transaction, name))
        if token:
            return token
    return None


def extract_tokens(transaction: Transaction) -> ExtractedTokens:
    """Extract at most one token of each kind using side-specific priorities.

    Parameters
    ----------
    transaction : Transaction
        Ledger line to scan.

    Returns
    -------
    ExtractedTokens
        Tokens found; missing kinds are None.
    """
    side = transaction.side
    return ExtractedTokens(
        invoice=_scan(transaction, TokenKind.INVOICE, FIELD_PRIORITY[(TokenKind.INVOICE, side)]),
        payment_reference=_scan(
            transaction,
            TokenKind.PAYMENT_REFERENCE,
            FIELD_PRIORITY[(TokenKind.PAYMENT_REFERENCE, side)],
        ),
        guarantee=_scan(transaction, TokenKind.GUARANTEE, FIELD_PRIORITY[(TokenKind.GUARANTEE, side)]),
    )


def split_reference_tokens(*texts: str | None) -> set[str]:
    """Uppercased alphanumeric runs of the given texts."""
    tokens: set[str] = set()
    for text in texts:
        if text:
            tokens.update(run.upper() for run in _ALNUM_RUN.findall(text))
    return tokens
