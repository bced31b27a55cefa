"""Attach extracted phone data to conversation records."""

from __future__ import annotations

from typing import Any, Iterable

from .extract import extract
from .logging import get_logger
from .phone import normalize_phone

logger = get_logger(__name__)

ENRICHED_FIELDS = (
    "enriched_phone_number",
    "enriched_identifier",
    "enriched_phone_raw",
    "enriched_phone_candidates",
)


def enrich_conversation(record: dict) -> dict:
    """Return a copy of ``record`` with the enriched_* fields added.

    Never raises: a record that breaks extraction gets empty enriched
    fields.
    """
    try:
        result = extract(record)
        derived: dict[str, Any] = {
            "enriched_phone_number": result.phone,
            "enriched_identifier": result.identifier,
            "enriched_phone_raw": result.raw,
            "enriched_phone_candidates": [c for c in result.candidates if c],
        }
    except Exception:
        logger.exception("Failed to enrich conversation", id=_record_id(record))
        derived = {
            "enriched_phone_number": None,
            "enriched_identifier": None,
            "enriched_phone_raw": None,
            "enriched_phone_candidates": [],
        }

    base = dict(record) if isinstance(record, dict) else {}
    return {**base, **derived}


def enrich_conversations(records: Iterable[dict]) -> list[dict]:
    """Enrich every record of a page."""
    return [enrich_conversation(record) for record in records]


def conversation_phone(record: dict) -> str | None:
    """The single normalized phone the matcher uses for an enriched record.

    Prefers the enriched phone, then the identifier, the raw phone text and
    finally the first candidate.
    """
    for key in ("enriched_phone_number", "enriched_identifier", "enriched_phone_raw"):
        value = record.get(key)
        if value:
            return normalize_phone(value)

    candidates = record.get("enriched_phone_candidates")
    if isinstance(candidates, list):
        first = next((c for c in candidates if c), None)
        if first:
            return normalize_phone(first)
    return None


def _record_id(record: Any) -> Any:
    return record.get("id") if isinstance(record, dict) else None
