"""
Phone number normalization for the import pipeline.

Every contact is keyed by its canonical phone number, so all identity
matching (import-time resolution and the merge pass) goes through
normalize_phone().

Dialing Convention:
    The exported logs come from a Maldivian device. Subscriber numbers are
    7 digits and mobile numbers start with 7; the country calling code is
    960. Canonical form is therefore +960XXXXXXX.

Normalization Rules (first match wins, after removing spaces, dashes and
parentheses):
    a. starts with +960            → unchanged (cleaned)
    b. starts with 960             → '+' prefixed
    c. 7 digits starting with 7    → '+960' prefixed
    d. 6 digits                    → '+9607' prefixed
    e. anything else               → original input returned untouched

normalize_phone() is idempotent: rules a-d always produce a value that
rule a maps to itself, and rule e returns an input whose cleaned form
matched none of a-d, so it does so again.
"""

import re
from typing import Optional

COUNTRY_CODE = "960"
TRUNK_DIGIT = "7"
CANONICAL_PREFIX = f"+{COUNTRY_CODE}"

# Characters stripped before matching
FORMATTING_PATTERN = re.compile(r"[\s\-()]")
LOCAL_WITH_TRUNK_PATTERN = re.compile(rf"^{TRUNK_DIGIT}\d{{6}}$")
LOCAL_WITHOUT_TRUNK_PATTERN = re.compile(r"^\d{6}$")


def normalize_phone(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to canonical +960 form.

    Args:
        raw: Raw phone number in any format.

    Returns:
        Canonical phone number, or the original value if it is empty or
        not in a recognized local/international format.

    Examples:
        >>> normalize_phone("7771234")
        '+9607771234'
        >>> normalize_phone("9607771234")
        '+9607771234'
        >>> normalize_phone("+960 777-1234")
        '+9607771234'
        >>> normalize_phone("771234")
        '+9607771234'
        >>> normalize_phone("+14155551234")
        '+14155551234'
    """
    if not raw:
        return raw

    cleaned = FORMATTING_PATTERN.sub("", raw)

    if cleaned.startswith(CANONICAL_PREFIX):
        return cleaned

    if cleaned.startswith(COUNTRY_CODE):
        return f"+{cleaned}"

    if LOCAL_WITH_TRUNK_PATTERN.match(cleaned):
        return f"{CANONICAL_PREFIX}{cleaned}"

    if LOCAL_WITHOUT_TRUNK_PATTERN.match(cleaned):
        return f"{CANONICAL_PREFIX}{TRUNK_DIGIT}{cleaned}"

    return raw


def is_canonical(phone: Optional[str]) -> bool:
    """Check whether a stored phone number is already in canonical form."""
    return bool(phone) and normalize_phone(phone) == phone


def is_same_contact(phone1: str, phone2: str) -> bool:
    """
    Check whether two phone numbers identify the same subscriber.

    Examples:
        >>> is_same_contact("7771234", "+9607771234")
        True
    """
    return normalize_phone(phone1) == normalize_phone(phone2)


def local_number(phone: str) -> str:
    """
    Extract the local subscriber part of a phone number.

    Returns the normalized number unchanged when it is not a +960 number.

    Examples:
        >>> local_number("+9607771234")
        '7771234'
    """
    normalized = normalize_phone(phone) or phone
    if normalized.startswith(CANONICAL_PREFIX):
        return normalized[len(CANONICAL_PREFIX):]
    return normalized


def format_phone_for_display(phone: str) -> str:
    """
    Format a phone number for display as '+960 777-1234'.

    Numbers that are not 7-digit local subscribers are returned normalized.

    Examples:
        >>> format_phone_for_display("7771234")
        '+960 777-1234'
    """
    normalized = normalize_phone(phone) or phone
    local = local_number(normalized)
    if normalized.startswith(CANONICAL_PREFIX) and len(local) == 7:
        return f"{CANONICAL_PREFIX} {local[:3]}-{local[3:]}"
    return normalized
