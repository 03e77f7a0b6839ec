"""
normalize.py - Text, amount and date normalization.

Text helpers (used by the engine):
    normalize_text(value)                  -> canonical comparison key
    build_haystack(description, party)     -> searchable transaction text
    contains_key(haystack, key)            -> guarded substring test
    contains_any(haystack, keywords)       -> keyword test

Value parsers (used by the statement/invoice loaders):
    parse_amount(value)   -> Decimal | None
    parse_date(value)     -> date | None

Design principles:
    - SAME normalization on BOTH sides of every comparison
    - Pure transformations, no external API calls
    - Parsers return None for invalid input; callers decide whether to skip
"""

from __future__ import annotations

import datetime as dt
import math
import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from dateutil import parser as dateparser

from logging_config import get_logger

logger = get_logger(__name__)

# Keys shorter than this never count as found inside a haystack. Short
# invoice numbers ("12") or supplier stubs ("AG") hit far too many
# unrelated booking texts.
MIN_KEY_LENGTH = 3

NULL_TOKENS = {"", "n/a", "na", "none", "null", "unknown", "-"}
CURRENCY_SYMBOLS = ("€", "$", "£", "¥", "EUR", "USD", "GBP", "CHF")

_GERMAN_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_GERMAN_AMOUNT = re.compile(r"^-?\d{1,3}(\.\d{3})*(,\d+)?$|^-?\d+,\d+$")

# Fallback parses run against both defaults and must agree, so the text
# itself has to supply day, month and year.
_FALLBACK_DEFAULTS = (dt.datetime(2000, 1, 1), dt.datetime(2001, 2, 2))


def normalize_text(value: Any) -> str:
    """Fold text into a canonical key: NFKC, casefolded, single-spaced."""
    if value is None:
        return ""
    text = unicodedata.normalize("NFKC", str(value)).casefold()
    return re.sub(r"\s+", " ", text).strip()


def build_haystack(description: Any, recipient_or_payer: Any = None) -> str:
    """Build the normalized text searched for invoice numbers and keywords."""
    return normalize_text(f"{description or ''} {recipient_or_payer or ''}")


def contains_key(haystack: str, key: Any) -> bool:
    """Whether a normalized `key` occurs in an already-normalized haystack."""
    needle = normalize_text(key)
    if len(needle) < MIN_KEY_LENGTH:
        return False
    return needle in haystack


def contains_any(haystack: str, keywords: Iterable[str]) -> bool:
    """Whether any keyword occurs in an already-normalized haystack."""
    return any(normalize_text(keyword) in haystack for keyword in keywords)


def parse_amount(value: Any) -> Decimal | None:
    """Parse a signed amount in German ("-1.234,56") or plain ("-1234.56") notation."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            logger.warning("parse_amount | non_finite=%r | fallback=None", value)
            return None
        return Decimal(str(value))

    cleaned = str(value).strip()
    if cleaned.lower() in NULL_TOKENS:
        return None

    for symbol in CURRENCY_SYMBOLS:
        cleaned = cleaned.replace(symbol, "")
    cleaned = cleaned.replace(" ", "").replace(" ", "")

    negative = cleaned.startswith("(") and cleaned.endswith(")")
    cleaned = cleaned.strip("()")
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]
    if cleaned.endswith("-"):
        # Some banks print debits as "129,95-".
        negative = True
        cleaned = cleaned[:-1]

    if _GERMAN_AMOUNT.match(cleaned):
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        logger.warning("parse_amount | parse_failed | raw=%r | fallback=None", value)
        return None

    if not amount.is_finite():
        logger.warning("parse_amount | non_finite=%r | fallback=None", value)
        return None

    if negative and amount > 0:
        amount = -amount
    logger.debug("parse_amount | raw=%r | parsed=%s", value, amount)
    return amount


def parse_date(value: Any) -> dt.date | None:
    """Parse a booking or invoice date into a calendar date."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value

    text = str(value).strip()
    if text.lower() in NULL_TOKENS:
        return None

    try:
        german = _GERMAN_DATE.match(text)
        if german:
            day, month, year = (int(part) for part in german.groups())
            return dt.date(year, month, day)

        iso = _ISO_DATE.match(text)
        if iso:
            year, month, day = (int(part) for part in iso.groups())
            return dt.date(year, month, day)
    except ValueError as exc:
        logger.warning("parse_date | invalid_calendar_date | raw=%r | error=%s", text, exc)
        return None

    if not any(char.isdigit() for char in text):
        logger.debug("parse_date | rejected_no_digits | raw=%r", text)
        return None

    try:
        first = dateparser.parse(text, dayfirst=True, default=_FALLBACK_DEFAULTS[0])
        second = dateparser.parse(text, dayfirst=True, default=_FALLBACK_DEFAULTS[1])
    except (ValueError, TypeError, OverflowError) as exc:
        logger.warning(
            "parse_date | parse_error=%s | raw=%r | fallback=None",
            type(exc).__name__,
            text,
        )
        return None

    if first is None or second is None:
        return None
    if first.date() != second.date():
        # dateutil filled a missing day, month or year from the default.
        logger.debug("parse_date | rejected_partial_date | raw=%r", text)
        return None
    logger.debug("parse_date | raw=%r | parsed=%s", text, first.date())
    return first.date()
