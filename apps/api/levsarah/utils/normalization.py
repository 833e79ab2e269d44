"""Phone normalization utilities.

Inbound WhatsApp senders arrive as ``whatsapp:+972...``, admins type numbers
with or without ``+``, and invites are often entered in local ``05x`` form.
Everything is stored as ``+<digits>``.
"""

import re
from typing import Optional

CHANNEL_PREFIX = "whatsapp:"
ISRAEL_COUNTRY_CODE = "972"


def strip_channel_prefix(sender: str) -> str:
    """Remove the ``whatsapp:`` channel prefix from a sender address."""
    sender = sender.strip()
    if sender.startswith(CHANNEL_PREFIX):
        return sender[len(CHANNEL_PREFIX):]
    return sender


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize phone to ``+<digits>`` form.

    Accepts:
    - Local Israeli format: 0501234567 → +972501234567
    - International digits: 972501234567 → +972501234567
    - Already prefixed: +972501234567 → +972501234567

    Raises:
        ValueError: If no digits are present
    """
    if not phone:
        return None

    digits = re.sub(r"\D", "", strip_channel_prefix(phone))
    if not digits:
        raise ValueError(f"Invalid phone number '{phone}'")

    if digits.startswith("0"):
        return f"+{ISRAEL_COUNTRY_CODE}{digits[1:]}"
    return f"+{digits}"


def phone_variants(phone: str) -> list[str]:
    """
    Candidate stored forms for a phone number.

    Profiles created before normalization was enforced may hold the number
    without ``+`` or without its country code, so lookups try: raw digits,
    ``+digits``, digits with a leading ``1`` or ``972`` stripped, each of
    those also with ``+``. Order is preserved and duplicates dropped.
    """
    digits = re.sub(r"\D", "", strip_channel_prefix(phone))
    if not digits:
        return []

    bases = [digits]
    if digits.startswith("1"):
        bases.append(digits[1:])
    if digits.startswith(ISRAEL_COUNTRY_CODE):
        bases.append(digits[len(ISRAEL_COUNTRY_CODE):])

    variants: list[str] = []
    for base in bases:
        if not base:
            continue
        for candidate in (base, f"+{base}"):
            if candidate not in variants:
                variants.append(candidate)
    return variants


def extract_phone_last4(phone: Optional[str]) -> Optional[str]:
    """Return the last 4 digits of a phone number, for logs."""
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    return digits[-4:] if len(digits) >= 4 else None


def mask_phone(phone: Optional[str]) -> str:
    last4 = extract_phone_last4(phone)
    return f"***{last4}" if last4 else "***"
