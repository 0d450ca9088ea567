"""
Field normalizers - canonical, hash-ready forms of captured PII.

Every formatter is a total function: empty or None input returns None and
no input raises. Raw values on the visit are never modified; the result is
a NormalizedFields object composed into an EnrichedVisit.

Transliteration uses ACCENT_TABLE for the common accented Latin letters and
``unidecode`` for anything still outside ASCII (Cyrillic, Greek, CJK, ...).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

import pandas as pd
from unidecode import unidecode

from adsync.visits.config import DEFAULT_PHONE_COUNTRY_CODE
from adsync.visits.schema import EnrichedVisit, ExpandedVisit, NormalizedFields

logger = logging.getLogger(__name__)

# Longest digit count still treated as a domestic number
MAX_DOMESTIC_DIGITS = 10

ACCENT_TABLE = {
    "á": "a", "à": "a", "â": "a", "ä": "a", "ã": "a", "å": "a",
    "æ": "ae",
    "ç": "c",
    "é": "e", "è": "e", "ê": "e", "ë": "e",
    "í": "i", "ì": "i", "î": "i", "ï": "i",
    "ñ": "n",
    "ó": "o", "ò": "o", "ô": "o", "ö": "o", "õ": "o", "ø": "o",
    "œ": "oe",
    "ú": "u", "ù": "u", "û": "u", "ü": "u",
    "ý": "y", "ÿ": "y",
    "ß": "ss",
}  # fmt: skip

_ACCENT_TRANSLATION = str.maketrans(ACCENT_TABLE)
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_DIGIT = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")
_DAY_FIRST_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")

GENDERS = {"male": "m", "m": "m", "female": "f", "f": "f"}


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def transliterate(value: str) -> str:
    """Lowercase ASCII rendering of ``value``."""
    text = value.lower().translate(_ACCENT_TRANSLATION)
    if not text.isascii():
        text = unidecode(text).lower()
    return text


def _alnum(value: str) -> str | None:
    return _NON_ALNUM.sub("", transliterate(value)) or None


def format_email(value: Any) -> str | None:
    """Trim and lowercase an email address."""
    text = _clean(value)
    return text.lower() if text else None


def format_phone(value: Any, country_code: str = DEFAULT_PHONE_COUNTRY_CODE) -> str | None:
    """Reduce a phone number to digits with a country code.

    Example:
        >>> format_phone("06-12345678", "31")
        '31612345678'
        >>> format_phone("+1 (415) 555-0100", "31")
        '14155550100'
    """
    text = _clean(value)
    if text is None:
        return None

    had_plus = text.startswith("+")
    digits = _NON_DIGIT.sub("", text)
    if had_plus:
        return digits or None

    digits = digits.lstrip("0")
    if not digits:
        return None
    if len(digits) <= MAX_DOMESTIC_DIGITS and not digits.startswith(country_code):
        digits = f"{country_code}{digits}"
    return digits


def format_name(value: Any) -> tuple[str | None, str | None]:
    """Split a full name into normalized first and last name.

    Example:
        >>> format_name("  Jan   de   Vries ")
        ('jan', 'devries')
    """
    text = _clean(value)
    if text is None:
        return None, None

    first, _, last = _WHITESPACE.sub(" ", text).partition(" ")
    return _alnum(first), _alnum(last) if last else None


def format_address(value: Any) -> str | None:
    """Normalize a street, city, region, postal code or country code."""
    text = _clean(value)
    return _alnum(text) if text else None


def format_gender(value: Any) -> str | None:
    text = _clean(value)
    return GENDERS.get(text.lower()) if text else None


def format_birth_date(value: Any) -> str | None:
    """Normalize a birth date to ``YYYYMMDD``.

    Accepts ``DD/MM/YYYY`` and ``DD-MM-YYYY`` explicitly and any other
    format pandas can parse. Text without digits is rejected.
    """
    text = _clean(value)
    if text is None or not any(c.isdigit() for c in text):
        return None

    match = _DAY_FIRST_DATE.match(text)
    try:
        if match:
            day, month, year = (int(part) for part in match.groups())
            return datetime(year, month, day).strftime("%Y%m%d")
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None

    if pd.isna(parsed):
        return None
    return parsed.strftime("%Y%m%d")


class FieldNormalizer:
    """Builds NormalizedFields for expanded visits."""

    def __init__(self, phone_country_code: str = DEFAULT_PHONE_COUNTRY_CODE):
        self.phone_country_code = phone_country_code

    def normalize(self, visit: ExpandedVisit) -> EnrichedVisit:
        """Return an EnrichedVisit with normalized fields and no hashes yet."""
        raw = visit.fields
        first_name, last_name = format_name(raw.name)
        normalized = NormalizedFields(
            email=format_email(raw.email),
            phone=format_phone(raw.phone, self.phone_country_code),
            first_name=first_name,
            last_name=last_name,
            street=format_address(raw.address),
            city=format_address(raw.city),
            region=format_address(raw.region),
            zip=format_address(raw.zip),
            country_code=format_address(raw.country_code),
            gender=format_gender(raw.gender),
            birth_date=format_birth_date(raw.birth_date),
        )
        return EnrichedVisit(visit=visit, normalized=normalized)

    def normalize_all(self, visits: list[ExpandedVisit]) -> list[EnrichedVisit]:
        enriched = [self.normalize(visit) for visit in visits]
        logger.debug(f"Normalized {len(enriched)} visits")
        return enriched
