"""Bounded, early-exit search for conversations by participant phone.

The search walks a paged conversation feed one page at a time and stops
as soon as it can: every target found, the feed ran dry, a short page, the
page cap, a transport error, or the caller's deadline/cancel signal. A
failure partway through is not an error for the caller; the matches so far
and the still-unresolved targets are always returned.
"""

from __future__ import annotations

import enum
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

from .enrich import conversation_phone, enrich_conversation
from .extract import lookup
from .logging import TransportError, get_logger
from .matching import TargetSet, match_phone
from .phone import normalize_phone

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_PAGES = 100
DEFAULT_CHANNEL_TYPES = ("api", "whatsapp")


class ConversationSource(Protocol):
    def fetch_page(self, page: int, page_size: int) -> list[dict]:
        """Return one page of conversation records (``page`` is 1-based).

        Raises:
            TransportError: The page could not be fetched or parsed
        """
        ...


class StopReason(str, enum.Enum):
    NO_TARGETS = "no_targets"
    ALL_FOUND = "all_found"
    NO_MORE_DATA = "no_more_data"
    SHORT_PAGE = "short_page"
    PAGE_CAP = "page_cap"
    TRANSPORT_ERROR = "transport_error"
    DEADLINE = "deadline"
    CANCELLED = "cancelled"


@dataclass
class SearchResult:
    matches: list[dict] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    pages_fetched: int = 0
    stop_reason: StopReason = StopReason.NO_TARGETS
    error: str | None = None

    @property
    def complete(self) -> bool:
        """True when the scan ended on its own rather than on an error or abort."""
        return self.stop_reason not in (
            StopReason.TRANSPORT_ERROR,
            StopReason.DEADLINE,
            StopReason.CANCELLED,
        )

    def to_dict(self) -> dict:
        return {
            "matches": self.matches,
            "unresolved": self.unresolved,
            "total": len(self.matches),
            "pages_fetched": self.pages_fetched,
            "stop_reason": self.stop_reason.value,
            "error": self.error,
        }


def normalize_targets(raw_targets: Any) -> list[str]:
    """Normalize caller input, dropping unusable values and duplicates.

    Anything other than a list or tuple is treated as no input.
    """
    if not isinstance(raw_targets, (list, tuple)):
        return []
    phones = (normalize_phone(value) for value in raw_targets)
    return list(dict.fromkeys(p for p in phones if p))


def is_target_channel(record: dict, channel_types: Iterable[str]) -> bool:
    """Check the record's inbox channel type (``inbox`` or ``meta.inbox``)."""
    inbox = lookup(record, "inbox") or lookup(record, "meta", "inbox")
    return lookup(inbox, "channel_type") in set(channel_types)


def search_conversations(
    raw_targets: Any,
    source: ConversationSource,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_pages: int = DEFAULT_MAX_PAGES,
    channel_types: Iterable[str] = DEFAULT_CHANNEL_TYPES,
    deadline: float | None = None,
    cancel: threading.Event | None = None,
) -> SearchResult:
    """Find the conversations whose participant phone matches a target.

    Args:
        raw_targets: Phone numbers in any format
        source: Paged conversation feed
        page_size: Records requested per page, fixed for the whole search
        max_pages: Page cap bounding the cost of one search
        channel_types: Inbox channel types worth matching
        deadline: time.monotonic() value after which no new page is fetched
        cancel: Event that stops the search between pages when set

    Returns:
        SearchResult with matches in discovery order and unresolved targets
    """
    targets = normalize_targets(raw_targets)
    result = SearchResult()
    if not targets:
        logger.info("No usable phone numbers to search for")
        return result

    channel_types = tuple(channel_types)
    pending = TargetSet(targets)
    seen_ids: set[Any] = set()
    logger.info("Searching conversations", targets=targets, max_pages=max_pages)

    result.stop_reason = StopReason.PAGE_CAP
    for page in range(1, max_pages + 1):
        if cancel is not None and cancel.is_set():
            result.stop_reason = StopReason.CANCELLED
            break
        if deadline is not None and time.monotonic() >= deadline:
            result.stop_reason = StopReason.DEADLINE
            break

        try:
            records = source.fetch_page(page, page_size)
        except TransportError as e:
            logger.warning("Stopped paging after fetch error", page=page, error=str(e))
            result.stop_reason = StopReason.TRANSPORT_ERROR
            result.error = str(e)
            break
        result.pages_fetched = page

        if not records:
            logger.debug("No more conversations", page=page)
            result.stop_reason = StopReason.NO_MORE_DATA
            break

        candidates = [r for r in records if is_target_channel(r, channel_types)]
        logger.debug(
            "Fetched page", page=page, records=len(records), channel=len(candidates)
        )

        for record in candidates:
            record_id = record.get("id")
            # Already matched (pages can shift while paging); don't let a
            # duplicate consume another target
            if record_id is not None and record_id in seen_ids:
                continue
            enriched = enrich_conversation(record)
            phone = conversation_phone(enriched)
            match = match_phone(phone, pending)
            if match is None:
                continue
            if record_id is not None:
                seen_ids.add(record_id)
            result.matches.append(enriched)
            logger.info(
                "Matched conversation",
                id=record_id,
                phone=phone,
                target=match.target,
                tier=match.tier.value,
            )
            if not pending:
                break

        if not pending:
            result.stop_reason = StopReason.ALL_FOUND
            break
        if len(records) < page_size:
            result.stop_reason = StopReason.SHORT_PAGE
            break

    result.unresolved = [t for t in targets if t in pending]
    logger.info(
        "Search finished",
        matches=len(result.matches),
        pages=result.pages_fetched,
        reason=result.stop_reason.value,
    )
    if result.unresolved:
        logger.warning("Phone numbers not found", unresolved=result.unresolved)
    return result


def search_by_phones(
    raw_targets: Any,
    source: ConversationSource | None = None,
    *,
    timeout: float | None = None,
    **options: Any,
) -> dict:
    """Search entry point returning plain data.

    Without ``source`` a ChatwootClient is built from configuration, and
    page size, page cap and channel types default to the configured values.

    Returns:
        Dict with "matches" and "unresolved" plus scan diagnostics

    Raises:
        ConfigurationError: Chatwoot settings are missing (checked before
            any request is made)
    """
    if not normalize_targets(raw_targets):
        return SearchResult().to_dict()

    if source is None:
        from .chatwoot import ChatwootClient
        from .config import get_chatwoot_settings, get_config, get_search_options

        config = get_config()
        source = ChatwootClient(get_chatwoot_settings(config))
        options = {**get_search_options(config), **options}

    if timeout is not None:
        options["deadline"] = time.monotonic() + timeout

    return search_conversations(raw_targets, source, **options).to_dict()
