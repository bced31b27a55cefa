"""Phone number normalization shared by extraction, matching and the JID cache."""

from __future__ import annotations

import re

# Shorter digit runs are ids or noise, not phone numbers
MIN_PHONE_DIGITS = 6

WHATSAPP_JID_DOMAIN = "s.whatsapp.net"

_VENDOR_PREFIX = re.compile(r"^(?:waid|whatsapp):", re.IGNORECASE)
_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_phone(value: object) -> str | None:
    """Normalize any phone representation to a canonical digit string.

    Handles the formats seen in conversation payloads:
    - JIDs: "5491112345678@s.whatsapp.net" -> "5491112345678"
    - Vendor prefixes: "WAID:+5491112345678", "whatsapp:+54..." (any case)
    - Formatting: "+54 9 11 1234-5678" -> "5491112345678"

    Returns None (never an empty string) for non-strings and for results
    shorter than MIN_PHONE_DIGITS.
    """
    if not isinstance(value, str) or not value:
        return None

    normalized = value.strip()
    if "@" in normalized:
        normalized = normalized.split("@", 1)[0]
    normalized = _VENDOR_PREFIX.sub("", normalized)

    # A leading + is the only non-digit kept; it is dropped right after
    normalized = normalized.lstrip()
    if normalized.startswith("+"):
        normalized = normalized[1:]
    digits = _NON_DIGITS.sub("", normalized)

    return digits if len(digits) >= MIN_PHONE_DIGITS else None


def phone_to_jid(value: str) -> str | None:
    """Build a WhatsApp user JID from any phone representation."""
    phone = normalize_phone(value)
    return f"{phone}@{WHATSAPP_JID_DOMAIN}" if phone else None
