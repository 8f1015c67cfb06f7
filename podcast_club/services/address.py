"""US mailing address normalization and validation"""

import re
from typing import Optional

US_STATE_CODES = {
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA", "HI", "ID", "IL", "IN",
    "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV",
    "NH", "NJ", "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC", "SD", "TN",
    "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY", "DC",
}

CITY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z .'-]{1,79}$")
POSTAL_PATTERN = re.compile(r"^\d{5}(?:-\d{4})?$")

ADDRESS_FIELDS = ("address_line1", "address_line2", "city", "state", "postal_code")


def normalize_address(raw: dict) -> dict:
    """Trim every field and uppercase the state code"""
    return {
        "address_line1": str(raw.get("address_line1") or "").strip(),
        "address_line2": str(raw.get("address_line2") or "").strip(),
        "city": str(raw.get("city") or "").strip(),
        "state": str(raw.get("state") or "").strip().upper(),
        "postal_code": str(raw.get("postal_code") or "").strip(),
    }


def validate_address(address: dict) -> Optional[str]:
    """Return the first problem with a normalized address, or None"""
    if not address.get("address_line1"):
        return "Address line 1 is required."
    if not address.get("city") or not CITY_PATTERN.match(address["city"]):
        return "City is required and must be a valid city name."
    if address.get("state") not in US_STATE_CODES:
        return "State must be a valid 2-letter US state code."
    if not POSTAL_PATTERN.match(address.get("postal_code") or ""):
        return "Postal code must be a valid US ZIP code."
    return None


def format_address(doc: dict) -> str:
    """Single-line address ("line1[, line2], City, ST 12345").

    Falls back to the stored free-text ``address`` for records that predate
    structured fields.
    """
    if doc.get("address_line1") and doc.get("city") and doc.get("state") and doc.get("postal_code"):
        line1 = ", ".join(part for part in (doc["address_line1"], doc.get("address_line2")) if part)
        return f"{line1}, {doc['city']}, {doc['state']} {doc['postal_code']}"
    return str(doc.get("address") or "").strip()
