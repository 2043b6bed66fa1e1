"""Country and calling-code inference for contact forms"""

import re
from typing import List, Optional

# Free-text country names seen on bookings
COUNTRY_CODES = {
    "turkey": "TR",
    "turkiye": "TR",
    "türkiye": "TR",
    "egypt": "EG",
    "tunisia": "TN",
    "france": "FR",
    "germany": "DE",
    "algeria": "DZ",
    "morocco": "MA",
    "saudi": "SA",
    "saudi arabia": "SA",
    "uae": "AE",
    "united arab emirates": "AE",
}

DESTINATION_COUNTRIES = {
    "paris": "FR",
    "istanbul": "TR",
    "tunis": "TN",
    "tunis city": "TN",
    "cairo": "EG",
    "new york": "US",
    "london": "GB",
}

# International dialling prefix -> ISO2
CALLING_CODES = {
    "216": "TN",
    "213": "DZ",
    "212": "MA",
    "966": "SA",
    "971": "AE",
    "20": "EG",
    "90": "TR",
    "33": "FR",
    "49": "DE",
    "44": "GB",
    "1": "US",
}

DEFAULT_CALLING_CODE = "216"


def _phone_digits(phone: str) -> str:
    """Digits of an international number with any + or 00 prefix removed"""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("00"):
        digits = digits[2:]
    return digits


def _is_international(phone: str) -> bool:
    stripped = (phone or "").strip()
    digits = re.sub(r"\D", "", stripped)
    return stripped.startswith("+") or digits.startswith("00") or len(digits) > 10


def normalize_country_code(country: Optional[str]) -> Optional[str]:
    """Map a free-text country (name or ISO2) to an upper-case ISO2 code"""
    if not country:
        return None
    value = country.strip().lower()
    if value in COUNTRY_CODES:
        return COUNTRY_CODES[value]
    if len(value) == 2 and value.isalpha():
        return value.upper()
    return None


def infer_country_from_phone(phone: Optional[str]) -> Optional[str]:
    """ISO2 code from an international phone prefix, longest prefix first"""
    if not phone or not _is_international(phone):
        return None
    digits = _phone_digits(phone)
    for prefix in sorted(CALLING_CODES, key=len, reverse=True):
        if digits.startswith(prefix):
            return CALLING_CODES[prefix]
    return None


def infer_country_from_destination(destination: Optional[str]) -> Optional[str]:
    """ISO2 code from a destination like 'Paris' or 'Hammamet, Tunisia'"""
    if not destination:
        return None
    text = destination.strip().lower()

    # "City, Country" puts the answer in the last part
    for part in reversed([p.strip() for p in text.split(",")]):
        if part in COUNTRY_CODES:
            return COUNTRY_CODES[part]

    for city, code in DESTINATION_COUNTRIES.items():
        if city in text:
            return code
    return None


def preferred_country_code(
    country: Optional[str], phone: Optional[str], destination: Optional[str]
) -> Optional[str]:
    """Country for the contact form: stated country, then phone, then destination"""
    return (
        normalize_country_code(country)
        or infer_country_from_phone(phone)
        or infer_country_from_destination(destination)
    )


def calling_code_candidates(phone: Optional[str]) -> List[str]:
    """
    Dial codes to try against a calling-code select, longest first.

    Ends with the default code so the form is never left on its own default.
    """
    candidates = []
    if phone and _is_international(phone):
        digits = _phone_digits(phone)
        candidates = [digits[:n] for n in (3, 2, 1) if len(digits) > n]
    if DEFAULT_CALLING_CODE not in candidates:
        candidates.append(DEFAULT_CALLING_CODE)
    return candidates


def national_number(phone: Optional[str]) -> str:
    """Phone digits without the international calling code"""
    if not phone:
        return ""
    if not _is_international(phone):
        return re.sub(r"\D", "", phone)
    digits = _phone_digits(phone)
    for prefix in sorted(CALLING_CODES, key=len, reverse=True):
        if digits.startswith(prefix):
            return digits[len(prefix):]
    return digits
