"""Tests for reference token extraction."""

import pytest

from reco_engine.matching.tokens import (
    extract_tokens,
    find_all_tokens,
    find_token,
    split_reference_tokens,
)
from reco_engine.models import AccountSide, TokenKind


class TestFindToken:
    """Tests for the token shapes."""

    @pytest.mark.parametrize(
        "kind, token",
        [
            (TokenKind.INVOICE, "BGI202401A1B2C3D"),
            (TokenKind.INVOICE, "BGI2024FRa1b2c3d"),
            (TokenKind.PAYMENT_REFERENCE, "BGPMT12345678"),
            (TokenKind.PAYMENT_REFERENCE, "BGPMTABCDEF0123456789XY"),
            (TokenKind.GUARANTEE, "G1234FR123456789"),
        ],
    )
    def test_token_embedded_in_text_is_returned_verbatim(self, kind: TokenKind, token: str) -> None:
        text = f"VIR SEPA {token} / ACME SARL"
        assert find_token(kind, text) == token

    def test_lowercase_prefix(self) -> None:
        assert find_token(TokenKind.INVOICE, "ref bgi202401a1b2c3d") == "bgi202401a1b2c3d"

    def test_mixed_case_prefix_rejected(self) -> None:
        assert find_token(TokenKind.INVOICE, "Bgi202401A1B2C3D") is None

    def test_adjacent_alphanumerics_rejected(self) -> None:
        assert find_token(TokenKind.INVOICE, "XBGI202401A1B2C3D") is None
        assert find_token(TokenKind.INVOICE, "BGI202401A1B2C3D9") is None
        assert find_token(TokenKind.GUARANTEE, "G1234FR1234567890") is None

    def test_punctuation_boundaries_accepted(self) -> None:
        assert find_token(TokenKind.GUARANTEE, "REF:G1234FR123456789;") == "G1234FR123456789"

    def test_non_hex_invoice_body_rejected(self) -> None:
        assert find_token(TokenKind.INVOICE, "BGI202401A1B2C3G") is None

    def test_payment_reference_too_short(self) -> None:
        assert find_token(TokenKind.PAYMENT_REFERENCE, "BGPMT1234567") is None

    def test_empty_text(self) -> None:
        assert find_token(TokenKind.INVOICE, None) is None
        assert find_token(TokenKind.INVOICE, "") is None

    def test_find_all_tokens_in_order(self) -> None:
        text = "BGI202401A1B2C3D and BGI202402FFFFFFF"
        assert find_all_tokens(TokenKind.INVOICE, text) == ["BGI202401A1B2C3D", "BGI202402FFFFFFF"]


class TestExtractTokens:
    """Tests for side-specific field priority."""

    def test_pivot_invoice_from_label_first(self, make_transaction) -> None:
        tx = make_transaction(
            AccountSide.PIVOT,
            raw_label="COLLECTION BGI202401A1B2C3D",
            reconciliation_num="BGI202402FFFFFFF",
        )
        assert extract_tokens(tx).invoice == "BGI202401A1B2C3D"

    def test_pivot_invoice_falls_back_to_origin(self, make_transaction) -> None:
        tx = make_transaction(AccountSide.PIVOT, raw_label="COLLECTION", reconciliation_origin_num="BGI202401A1B2C3D")
        assert extract_tokens(tx).invoice == "BGI202401A1B2C3D"

    def test_receivable_invoice_hint_first(self, make_transaction) -> None:
        tx = make_transaction(
            AccountSide.RECEIVABLE,
            invoice_hint="BGI202401A1B2C3D",
            reconciliation_num="BGI202402FFFFFFF",
        )
        assert extract_tokens(tx).invoice == "BGI202401A1B2C3D"

    def test_receivable_invoice_ignores_label(self, make_transaction) -> None:
        tx = make_transaction(AccountSide.RECEIVABLE, raw_label="FACTURE BGI202401A1B2C3D")
        assert extract_tokens(tx).invoice is None

    def test_payment_reference_priority(self, make_transaction) -> None:
        tx = make_transaction(
            AccountSide.PIVOT,
            reconciliation_num="BGPMTAAAA1111",
            raw_label="BGPMTBBBB2222",
        )
        assert extract_tokens(tx).payment_reference == "BGPMTAAAA1111"

    def test_guarantee_from_label(self, make_transaction) -> None:
        tx = make_transaction(AccountSide.RECEIVABLE, raw_label="GUARANTEE G1234FR123456789")
        tokens = extract_tokens(tx)
        assert tokens.guarantee == "G1234FR123456789"
        assert tokens

    def test_nothing_found(self, make_transaction) -> None:
        tokens = extract_tokens(make_transaction(raw_label="VIREMENT DIVERS"))
        assert tokens.invoice is None
        assert tokens.payment_reference is None
        assert tokens.guarantee is None
        assert not tokens


class TestSplitReferenceTokens:
    """Tests for alphanumeric run splitting."""

    def test_splits_and_uppercases(self) -> None:
        assert split_reference_tokens("comm-123/ab 45", None, "X_Y") == {"COMM", "123", "AB", "45", "X", "Y"}

    def test_empty(self) -> None:
        assert split_reference_tokens(None, "") == set()


class TestTokenRoundTrip:
    """Formatting a known token into text and extracting it gives it back."""

    @pytest.mark.parametrize(
        "kind, token, template",
        [
            (TokenKind.INVOICE, "BGI202401A1B2C3D", "PAIEMENT {} RECU"),
            (TokenKind.PAYMENT_REFERENCE, "BGPMTQ7W8E9R0T1Y2", "{}"),
            (TokenKind.GUARANTEE, "G1234FR123456789", "(ref {})"),
        ],
    )
    def test_round_trip(self, kind: TokenKind, token: str, template: str) -> None:
        assert find_token(kind, template.format(token)) == token
