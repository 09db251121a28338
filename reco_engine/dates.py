"""Tolerant date parsing for billing and ledger extracts.

Extract dates arrive in many shapes: ``05-Jan-24``, ``05/01/2024``,
``2024-01-05``, ``05.01.2024``, sometimes with en/em dashes, stray
whitespace or French/Italian month names. ``parse_date`` tries explicit
patterns first, then locale-aware generic parsing, then the uppercased
input against the explicit patterns again.
"""

import re
from datetime import date, datetime

from dateutil import parser as date_parser

EXPLICIT_FORMATS: tuple[str, ...] = (
    "%d-%b-%y",
    "%d-%b-%Y",
    "%d/%m/%y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%d.%m.%Y",
    "%d.%m.%y",
)

_DASHES = re.compile(r"[\u2010-\u2015\u2212]")
_AROUND_DASH = re.compile(r"\s*-\s*")
_WHITESPACE = re.compile(r"\s+")


class FrenchParserInfo(date_parser.parserinfo):
    """Day-first parsing with French month and weekday names."""

    MONTHS = [
        ("janv", "janvier"),
        ("févr", "fevr", "février", "fevrier"),
        ("mars",),
        ("avr", "avril"),
        ("mai",),
        ("juin",),
        ("juil", "juillet"),
        ("août", "aout"),
        ("sept", "septembre"),
        ("oct", "octobre"),
        ("nov", "novembre"),
        ("déc", "dec", "décembre", "decembre"),
    ]
    WEEKDAYS = [
        ("lundi",),
        ("mardi",),
        ("mercredi",),
        ("jeudi",),
        ("vendredi",),
        ("samedi",),
        ("dimanche",),
    ]

    def __init__(self) -> None:
        super().__init__(dayfirst=True)


class ItalianParserInfo(date_parser.parserinfo):
    """Day-first parsing with Italian month and weekday names."""

    MONTHS = [
        ("gen", "gennaio"),
        ("feb", "febbraio"),
        ("mar", "marzo"),
        ("apr", "aprile"),
        ("mag", "maggio"),
        ("giu", "giugno"),
        ("lug", "luglio"),
        ("ago", "agosto"),
        ("set", "settembre"),
        ("ott", "ottobre"),
        ("nov", "novembre"),
        ("dic", "dicembre"),
    ]
    WEEKDAYS = [
        ("lunedì", "lunedi"),
        ("martedì", "martedi"),
        ("mercoledì", "mercoledi"),
        ("giovedì", "giovedi"),
        ("venerdì", "venerdi"),
        ("sabato",),
        ("domenica",),
    ]

    def __init__(self) -> None:
        super().__init__(dayfirst=True)


# Invariant (month-first) then French then Italian.
LOCALE_PARSERS: tuple[date_parser.parserinfo, ...] = (
    date_parser.parserinfo(),
    FrenchParserInfo(),
    ItalianParserInfo(),
)


def normalize_date_text(value: str) -> str:
    """Unify dash variants and collapse whitespace."""
    text = _DASHES.sub("-", value.strip())
    text = _AROUND_DASH.sub("-", text)
    return _WHITESPACE.sub(" ", text)


def _parse_explicit(text: str) -> date | None:
    for fmt in EXPLICIT_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _parse_generic(text: str) -> date | None:
    for info in LOCALE_PARSERS:
        try:
            return date_parser.parse(text, parserinfo=info).date()
        except (ValueError, OverflowError):
            continue
    return None


def parse_date(value: object) -> date | None:
    """Parse a free-text extract date.

    Parameters
    ----------
    value : object
        Raw value; ``date``/``datetime`` instances pass through.

    Returns
    -------
    date | None
        Parsed calendar date, or None when nothing matches.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = normalize_date_text(value)
    return _parse_explicit(text) or _parse_generic(text) or _parse_explicit(text.upper())
