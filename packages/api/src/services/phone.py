# This project was developed with assistance from AI tools.
"""Phone number normalization for OTP and WhatsApp delivery."""

import re

from ..core.config import settings

_E164 = re.compile(r"^\+[1-9]\d{8,14}$")


def format_phone_number(phone: str, country_code: str | None = None) -> str:
    """Normalize a local or international number to E.164.

    ``0599...`` and bare ``599...`` get the default country code; ``00``
    international prefixes are treated like ``+``.
    """
    country_code = country_code or settings.PHONE_COUNTRY_CODE
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("00"):
        return f"+{digits[2:]}"
    if digits.startswith(country_code):
        return f"+{digits}"
    if digits.startswith("0"):
        return f"+{country_code}{digits[1:]}"
    return f"+{country_code}{digits}"


def is_valid_phone_number(phone: str, country_code: str | None = None) -> bool:
    if not phone or not re.sub(r"\D", "", phone):
        return False
    return bool(_E164.match(format_phone_number(phone, country_code)))


def synthetic_email_for_phone(phone: str, domain: str | None = None) -> str:
    """Placeholder email given to accounts created from a phone number alone."""
    domain = domain or settings.PHONE_ONLY_EMAIL_DOMAIN
    digits = re.sub(r"\D", "", format_phone_number(phone))
    return f"{digits}@{domain}"


def is_synthetic_email(email: str | None, domain: str | None = None) -> bool:
    domain = domain or settings.PHONE_ONLY_EMAIL_DOMAIN
    if not email:
        return False
    local, _, host = email.partition("@")
    return host.lower() == domain.lower() and local.isdigit()
