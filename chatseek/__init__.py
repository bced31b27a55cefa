"""Find Chatwoot WhatsApp conversations by participant phone number."""

from .phone import normalize_phone
from .search import SearchResult, search_by_phones, search_conversations

__all__ = [
    "SearchResult",
    "normalize_phone",
    "search_by_phones",
    "search_conversations",
]
