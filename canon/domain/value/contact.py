"""Syntax checks for the secondary identifiers a user can be found by."""

import re

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")
_NATIONAL_RE = re.compile(r"^[0-9]{10}$")


def is_email(identifier: str) -> bool:
    """Return True if the identifier is syntactically an email address."""
    return bool(_EMAIL_RE.match(identifier))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_phone(identifier: str) -> bool:
    """Return True if the identifier looks like a phone number.

    10 to 15 digits with an optional leading ``+``.
    """
    return bool(_PHONE_RE.match(identifier))


def phone_variants(phone: str, default_country_code: str) -> list[str]:
    """Spellings a stored phone number may have, most literal first.

    Numbers are stored inconsistently by the messaging channels: with or
    without ``+`` and, for national numbers, with or without the country
    prefix.

    Args:
        phone: Phone number as received
        default_country_code: Country prefix for bare national numbers (e.g. "91")

    Returns:
        Ordered, de-duplicated list of variants to try
    """
    variants = [phone]
    if phone.startswith("+"):
        variants.append(phone[1:])
    else:
        variants.append(f"+{phone}")
        if _NATIONAL_RE.match(phone):
            variants.append(f"+{default_country_code}{phone}")
            variants.append(f"{default_country_code}{phone}")

    return list(dict.fromkeys(variants))
