# -*- coding: utf-8 -*-
"""Locale-aware cleaning utilities shared by the import validators.

Handles the formats found in register exports and hand-maintained sheets:
- Accented / localized header names ("Qté", "Catégorie")
- French decimal commas and currency symbols ("12,50 €")
- Accounting negatives in parentheses ("(30,00)")
- Excel serial day numbers, DD/MM/YYYY, ISO and DD-MM-YYYY dates
"""

import logging
import re
import unicodedata
from datetime import date, datetime, timedelta
from typing import Any, Optional

import pandas as pd

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = re.compile(r"[€$£¥₹]")
NUMBER_PATTERN = re.compile(r"^\d+(\.\d+)?$|^\.\d+$")

EXCEL_EPOCH = datetime(1899, 12, 30)
EXCEL_MAX_SERIAL = 2958465  # 9999-12-31

DDMMYYYY_SLASH = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
DDMMYYYY_DASH = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}([T ].*)?$")
SERIAL_PATTERN = re.compile(r"^\d+(\.\d+)?$")

ACCEPTED_DATE_FORMATS = (
    "numéro de série Excel",
    "DD/MM/YYYY",
    "YYYY-MM-DD",
    "DD-MM-YYYY",
)


def is_blank(value: Any) -> bool:
    """Check whether a loose cell value is empty (None, NaN or whitespace)."""
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return str(value).strip() == ""


def cell_text(value: Any) -> str:
    """Render a loose cell value as stripped text ("" for blanks)."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def strip_diacritics(text: str) -> str:
    """Remove combining accents: "Qté" -> "Qte"."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_whitespace(text: str) -> str:
    """Strip and collapse internal whitespace runs to single spaces."""
    return re.sub(r"\s+", " ", str(text)).strip()


def normalize_key(text: Any) -> str:
    """Lowercase, trimmed, whitespace-collapsed form used for matching."""
    return normalize_whitespace(cell_text(text)).lower()


def title_case_words(text: str) -> str:
    """Title-case each word and join them: "prix unitaire" -> "PrixUnitaire"."""
    return "".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]


def clean_numeric_string(value: Any) -> str:
    """Strip currency symbols and spaces and normalize the decimal separator.

    Handles:
    - Currency symbols and spaces: "12,50 €" -> "12,50"
    - Decimal comma: "12,50" -> "12.50"
    - Thousands separators when both separators appear: "1.234,56" -> "1234.56"
    - Negative values in parentheses: "(30,00)" -> "-30.00"

    Args:
        value: Raw cell value

    Returns:
        Cleaned string suitable for float conversion (may still be invalid)
    """
    cleaned = CURRENCY_SYMBOLS.sub("", cell_text(value))
    cleaned = re.sub(r"\s", "", cleaned)

    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".", 1)

    return cleaned


def parse_amount(value: Any) -> Optional[float]:
    """Parse a signed monetary amount, keeping negative values.

    Returns:
        Parsed float, or None when the cell is blank or not numeric.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and not pd.isna(value):
        return float(value)

    cleaned = clean_numeric_string(value)
    if not cleaned:
        return None

    negative = cleaned.startswith("-")
    if negative or cleaned.startswith("+"):
        cleaned = cleaned[1:]

    if not NUMBER_PATTERN.match(cleaned):
        return None

    parsed = float(cleaned)
    return -parsed if negative else parsed


def parse_integer(value: Any) -> Optional[int]:
    """Parse a whole-number cell ("12", "12.0", 12.0). Fractions are rejected."""
    parsed = parse_amount(value)
    if parsed is None or not float(parsed).is_integer():
        return None
    return int(parsed)


def round_half_up(value: float, digits: int = 2) -> float:
    """Round to a fixed number of decimals the way spreadsheets do."""
    factor = 10**digits
    scaled = abs(value) * factor
    rounded = int(scaled + 0.5 + 1e-9) / factor
    return -rounded if value < 0 else rounded


def _excel_serial_to_datetime(serial: float) -> Optional[datetime]:
    if serial <= 1 or serial > EXCEL_MAX_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=serial)


def _day_first(match: re.Match) -> Optional[datetime]:
    day, month, year = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a date cell, trying each accepted format in order.

    Order: Excel serial day number (epoch 1899-12-30, so serial 2 is
    1900-01-01), DD/MM/YYYY, ISO YYYY-MM-DD, DD-MM-YYYY, then a generic
    day-first parse. The first successful parse wins.

    Args:
        value: Raw cell value (number, string, date or datetime)

    Returns:
        Naive datetime, or None if no format matched.
    """
    if is_blank(value) or isinstance(value, bool):
        return None

    if isinstance(value, pd.Timestamp):
        return value.tz_localize(None).to_pydatetime() if value.tzinfo else value.to_pydatetime()
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        return _excel_serial_to_datetime(float(value))

    text = str(value).strip()

    if SERIAL_PATTERN.match(text):
        parsed = _excel_serial_to_datetime(float(text))
        if parsed is not None:
            return parsed

    match = DDMMYYYY_SLASH.match(text)
    if match:
        return _day_first(match)

    if ISO_DATE.match(text):
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            return parsed.replace(tzinfo=None)
        except ValueError:
            pass

    match = DDMMYYYY_DASH.match(text)
    if match:
        return _day_first(match)

    parsed = pd.to_datetime(text, dayfirst=True, errors="coerce")
    if pd.isna(parsed):
        logger.debug(f"Unparseable date value: {text!r}")
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_localize(None)
    return parsed.to_pydatetime()


def parse_iso_day(value: Any) -> Optional[date]:
    """Parse a stored ISO day string (YYYY-MM-DD) to a date, None if invalid."""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()[:10]).date()
    except ValueError:
        return None
