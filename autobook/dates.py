"""Date helpers: request dates, date-of-birth formats and deadline parsing"""

import re
from datetime import date, datetime
from typing import List, Optional

from dateutil.parser import parse as parse_date

# A written-out date, optionally followed by a time
_DATE_TEXT = (
    r"((?:[A-Z][a-z]+\.?\s+\d{1,2},?\s+\d{4}|\d{1,2}\s+[A-Z][a-z]+\.?\s+\d{4})"
    r"(?:,?\s+(?:at\s+)?\d{1,2}:\d{2}\s*(?:[AaPp][Mm])?)?)"
)
_NUMERIC_DATE = r"(\d{1,2}/\d{1,2}/\d{4})"

# Ordered; the first one that parses wins
DEADLINE_PATTERNS = [
    re.compile(rf"(?i:from)\s+{_DATE_TEXT}\s*:\s*[€$£]"),
    re.compile(rf"(?i:cancellation\s+cost\s+from)\s+{_DATE_TEXT}"),
    re.compile(rf"(?i:free\s+cancellation\s+(?:until|before))\s+{_DATE_TEXT}"),
    re.compile(rf"(?i:cancel\s+for\s+free\s+until)\s+{_DATE_TEXT}"),
    re.compile(
        rf"(?i:free\s+cancellation\s+(?:until|before)|cancel\s+for\s+free\s+until)\s+{_NUMERIC_DATE}"
    ),
]


def parse_iso_date(value: str) -> date:
    """
    Parse a YYYY-MM-DD string.

    Raises:
        ValueError: If the value is not a valid date
    """
    try:
        return parse_date(value).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date '{value}': {e}")


def extract_free_cancellation_deadline(text: str) -> Optional[datetime]:
    """
    Find the last moment a reservation can be cancelled for free.

    Args:
        text: Visible text of the reservation details page

    Returns:
        Deadline as a naive datetime, or None when the page names none
    """
    if not text:
        return None

    for index, pattern in enumerate(DEADLINE_PATTERNS):
        match = pattern.search(text)
        if not match:
            continue
        raw = re.sub(r"\s+at\s+", " ", match.group(1))
        numeric = index == len(DEADLINE_PATTERNS) - 1
        try:
            return parse_date(raw, dayfirst=numeric)
        except (ValueError, OverflowError):
            continue

    return None


def dob_candidates(dob: date, placeholder: str = "") -> List[str]:
    """
    Formats to try in a free-text date-of-birth field, most likely first.

    A placeholder that spells out month-first moves MM/DD/YYYY to the front.
    """
    day_first = dob.strftime("%d/%m/%Y")
    day_first_dashed = dob.strftime("%d-%m-%Y")
    month_first = dob.strftime("%m/%d/%Y")
    iso = dob.isoformat()

    hint = (placeholder or "").lower().replace(" ", "")
    if hint.startswith("mm/dd") or hint.startswith("mm-dd"):
        ordered = [month_first, day_first, day_first_dashed, iso]
    else:
        ordered = [day_first, day_first_dashed, month_first, iso]

    seen = set()
    return [f for f in ordered if not (f in seen or seen.add(f))]


def dob_value_matches(value: Optional[str], dob: date) -> bool:
    """A filled date-of-birth field is accepted only if it kept the 4-digit year"""
    return bool(value) and str(dob.year) in value


def parse_month_header(text: str) -> Optional[date]:
    """Parse a calendar header such as 'February 2026' to the first of that month"""
    cleaned = (text or "").strip()
    if not re.search(r"\d{4}", cleaned):
        return None
    try:
        return parse_date(cleaned, default=datetime(2000, 1, 1)).date().replace(day=1)
    except (ValueError, OverflowError):
        return None


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start's month to end's month"""
    return (end.year - start.year) * 12 + (end.month - start.month)
