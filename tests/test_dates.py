"""Tests for tolerant extract date parsing."""

from datetime import date, datetime

import pytest

from reco_engine.dates import normalize_date_text, parse_date


class TestNormalizeDateText:
    """Tests for dash and whitespace normalisation."""

    def test_unicode_dashes(self) -> None:
        assert normalize_date_text("05–Jan—24") == "05-Jan-24"

    def test_spaces_around_dashes(self) -> None:
        assert normalize_date_text("  05 - Jan -  2024 ") == "05-Jan-2024"

    def test_whitespace_runs(self) -> None:
        assert normalize_date_text("15   janvier\t2024") == "15 janvier 2024"


class TestParseDate:
    """Tests for parse_date."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("05-Jan-24", date(2024, 1, 5)),
            ("05-JAN-2024", date(2024, 1, 5)),
            ("05/01/2024", date(2024, 1, 5)),
            ("05/01/24", date(2024, 1, 5)),
            ("2024-01-05", date(2024, 1, 5)),
            ("05.01.2024", date(2024, 1, 5)),
            ("05.01.24", date(2024, 1, 5)),
        ],
    )
    def test_explicit_formats(self, text: str, expected: date) -> None:
        assert parse_date(text) == expected

    def test_day_first_for_slashes(self) -> None:
        assert parse_date("03/04/2024") == date(2024, 4, 3)

    def test_unicode_dash_variant(self) -> None:
        assert parse_date("05–Jan–24") == date(2024, 1, 5)

    def test_english_long_form(self) -> None:
        assert parse_date("January 5, 2024") == date(2024, 1, 5)

    def test_french_month_name(self) -> None:
        assert parse_date("15 janvier 2024") == date(2024, 1, 15)

    def test_french_accented_month(self) -> None:
        assert parse_date("3 février 2024") == date(2024, 2, 3)

    def test_italian_month_name(self) -> None:
        assert parse_date("15 marzo 2024") == date(2024, 3, 15)

    def test_datetime_passthrough(self) -> None:
        assert parse_date(datetime(2024, 1, 5, 13, 45)) == date(2024, 1, 5)

    def test_date_passthrough(self) -> None:
        assert parse_date(date(2024, 1, 5)) == date(2024, 1, 5)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", 20240105, object()])
    def test_unparseable_returns_none(self, value: object) -> None:
        assert parse_date(value) is None
