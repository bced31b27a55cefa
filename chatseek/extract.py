"""Phone candidate extraction from loosely structured conversation records.

Chatwoot stores the participant's phone number in up to ten places, none
of them reliably populated: the last message's sender, the linked contact,
``meta.sender``, ``additional_attributes`` and two ``source_id`` fields that
mix channel-specific encodings ("WAID:5491112345678", JIDs, plain digits).

Each location is a FieldPath. PHONE_FIELD_PATHS lists them from most to
least reliable: explicit phone fields first, then identifiers (phone-like
but often a JID or vendor-prefixed), then source ids as a last resort.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from .phone import normalize_phone

PHONE = "phone"
IDENTIFIER = "identifier"


def lookup(record: Any, *path: str) -> Any:
    """Follow nested dict keys, returning None at the first missing level."""
    current = record
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def as_text(value: Any) -> str | None:
    """Coerce a raw field value to non-empty text.

    Numbers are kept (wa_id is sometimes numeric); bools and containers are
    not phone data.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass(frozen=True)
class FieldPath:
    """One place a phone number may live in a conversation record."""

    label: str
    kind: str
    paths: tuple[tuple[str, ...], ...]

    def read(self, record: Any) -> str | None:
        """Return the first non-empty value among this field's key paths."""
        for path in self.paths:
            value = as_text(lookup(record, *path))
            if value is not None:
                return value
        return None


def _field(label: str, kind: str, *paths: str) -> FieldPath:
    return FieldPath(label, kind, tuple(tuple(p.split(".")) for p in paths))


PHONE_FIELD_PATHS: tuple[FieldPath, ...] = (
    _field("sender.phone", PHONE, "last_non_activity_message.sender.phone_number"),
    _field(
        "sender.identifier", IDENTIFIER, "last_non_activity_message.sender.identifier"
    ),
    _field("contact.phone", PHONE, "contact.phone_number"),
    _field("contact.identifier", IDENTIFIER, "contact.identifier"),
    _field("meta.sender.phone", PHONE, "meta.sender.phone_number", "meta.sender.phone"),
    _field("meta.sender.identifier", IDENTIFIER, "meta.sender.identifier"),
    _field(
        "attributes.phone",
        PHONE,
        "additional_attributes.phone_number",
        "additional_attributes.phone",
    ),
    _field("attributes.wa_id", IDENTIFIER, "additional_attributes.wa_id"),
    _field("message.source_id", IDENTIFIER, "last_non_activity_message.source_id"),
    _field("contact_inbox.source_id", IDENTIFIER, "contact_inbox.source_id"),
)


@dataclass(frozen=True)
class Extraction:
    """Everything extraction learned about one record."""

    phone: str | None
    identifier: str | None
    raw: str | None
    candidates: list[str]


def extract(
    record: Any,
    fields: tuple[FieldPath, ...] = PHONE_FIELD_PATHS,
    normalize: Callable[[Any], str | None] = normalize_phone,
) -> Extraction:
    """Walk ``fields`` in priority order over ``record``.

    The best phone is the first field whose value normalizes to a usable
    number. Every non-empty raw value is still collected, since the
    matcher may need values past the winner.
    """
    phone: str | None = None
    raw: str | None = None
    identifier: str | None = None
    candidates: list[str] = []

    for field in fields:
        value = field.read(record)
        if value is None:
            continue
        candidates.append(value)
        if identifier is None and field.kind == IDENTIFIER:
            identifier = value
        if phone is None:
            normalized = normalize(value)
            if normalized:
                phone, raw = normalized, value

    return Extraction(
        phone=phone, identifier=identifier, raw=raw, candidates=candidates
    )


def extract_candidates(record: Any) -> list[str]:
    """Raw phone-like strings from ``record``, in priority order."""
    return extract(record).candidates


def best_of(record: Any) -> tuple[str | None, str | None, str | None]:
    """Return (best phone, best identifier, raw text of the best phone)."""
    result = extract(record)
    return result.phone, result.identifier, result.raw
