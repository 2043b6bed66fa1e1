"""Booking reference (PNR) extraction from confirmation pages"""

import re
from typing import Optional

# A code must carry a digit; CSS-uppercased headings ("CONFIRMED") are words
_CODE = r"(?=[A-Z]*[0-9])[A-Z0-9]"

# Labelled patterns first; the bare code heuristic is the last resort.
# Labels match any case, the code itself must be upper-case.
HOTEL_REFERENCE_PATTERNS = [
    re.compile(rf"(?i:booking\s+(?:reference|number|confirmation))[:\s]+({_CODE}{{6,12}})\b"),
    re.compile(rf"(?i:confirmation\s+(?:code|number))[:\s]+({_CODE}{{6,12}})\b"),
    re.compile(rf"(?i:reference)[:\s]+({_CODE}{{6,12}})\b"),
    re.compile(rf"(?i:booking\s+ID)[:\s]+({_CODE}{{6,12}})\b"),
    re.compile(rf"(?i:PNR)[:\s]+({_CODE}{{6,10}})\b"),
    re.compile(
        r"(?i:(?:booking|confirmation|reservation)\s+number)[:\s#]+"
        r"([0-9]{2,}(?:[ .-]?[0-9]{3,})*)"
    ),
    re.compile(r"\b([A-Z]{2}[0-9]{6,8})\b"),
]

FLIGHT_REFERENCE_PATTERNS = [
    re.compile(rf"\b(?i:reference|booking\s+ref(?:erence)?|pnr|code)\s*:?\s*({_CODE}{{6}})\b"),
]

_BARE_FLIGHT_CODE = re.compile(rf"\b({_CODE}{{6}})\b")

# Flight numbers such as BJ0421 share the record locator shape
_FLIGHT_NUMBER = re.compile(r"^[A-Z]{2}[0-9]{4}$")
_ALNUM_CODE = re.compile(rf"^{_CODE}{{6,12}}$")
_NUMERIC_CODE = re.compile(r"^[0-9][0-9 .-]{5,}$")


def normalize_reference(raw: str) -> str:
    """Strip separators from a purely numeric reference; leave codes alone"""
    value = raw.strip()
    digits = re.sub(r"\D", "", value)
    if re.fullmatch(r"[0-9 .\-]+", value) and len(digits) >= 6:
        return digits
    return value


def extract_reference(text: Optional[str]) -> Optional[str]:
    """
    Extract a hotel booking reference from confirmation page text.

    Args:
        text: Visible page text

    Returns:
        Normalized reference, or None when no pattern matched
    """
    if not text:
        return None
    for pattern in HOTEL_REFERENCE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        reference = normalize_reference(match.group(1))
        if reference.isdigit() and len(reference) < 6:
            continue
        return reference
    return None


def reference_from_element_text(text: Optional[str]) -> Optional[str]:
    """Accept the whole text of a dedicated element if it is shaped like a code"""
    if not text:
        return None
    value = text.strip()
    if _ALNUM_CODE.match(value):
        return value
    if _NUMERIC_CODE.match(value):
        digits = re.sub(r"\D", "", value)
        if len(digits) >= 6:
            return digits
    return None


def extract_flight_reference(text: Optional[str]) -> Optional[str]:
    """Six-character airline record locator, labelled first, then bare"""
    if not text:
        return None
    for pattern in FLIGHT_REFERENCE_PATTERNS:
        match = pattern.search(text)
        if match and not match.group(1).isdigit():
            return match.group(1)
    for match in _BARE_FLIGHT_CODE.finditer(text):
        code = match.group(1)
        if code.isdigit() or _FLIGHT_NUMBER.match(code):
            continue
        return code
    return None
