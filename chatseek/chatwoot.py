"""Chatwoot conversations API client.

Implements the ConversationSource used by the search, plus a filtered
single-page listing for the `chats` command.
"""

from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from .config import ChatwootSettings
from .enrich import enrich_conversations
from .extract import lookup
from .logging import TransportError, get_logger

logger = get_logger(__name__)

WHATSAPP_JID_SUFFIX = "@s.whatsapp.net"


@dataclass(frozen=True)
class ConversationPage:
    """One listing page: WhatsApp chats plus how many records Chatwoot sent."""

    chats: list[dict]
    fetched: int


def extract_conversations(payload: Any) -> list[dict]:
    """Pull the conversation list out of a Chatwoot response body.

    Chatwoot versions disagree on the envelope: the list may be the root,
    ``data.payload`` (current API), ``data`` or ``payload``.

    Raises:
        TransportError: The body has none of the known shapes
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        data = payload.get("data")
        nested = lookup(data, "payload")
        if isinstance(nested, list):
            return nested
        if isinstance(data, list):
            return data
        if isinstance(payload.get("payload"), list):
            return payload["payload"]
        keys = sorted(payload)
    else:
        keys = []
    raise TransportError(f"Unexpected conversations response structure (keys: {keys})")


def is_whatsapp_conversation(record: dict) -> bool:
    """Heuristic WhatsApp check for an enriched conversation.

    Listings don't always carry the inbox, so this looks at the traces a
    WhatsApp participant leaves instead.
    """
    sender = lookup(record, "last_non_activity_message", "sender")
    sender_identifier = lookup(sender, "identifier")
    if isinstance(sender_identifier, str) and WHATSAPP_JID_SUFFIX in sender_identifier:
        return True
    if lookup(sender, "phone_number"):
        return True
    source_id = lookup(record, "last_non_activity_message", "source_id")
    if isinstance(source_id, str) and "WAID:" in source_id:
        return True
    if record.get("enriched_phone_number"):
        return True
    identifier = record.get("enriched_identifier")
    return isinstance(identifier, str) and WHATSAPP_JID_SUFFIX in identifier


class ChatwootClient:
    """Read-only access to one Chatwoot account's conversations."""

    def __init__(self, settings: ChatwootSettings):
        self.settings = settings

    @property
    def conversations_url(self) -> str:
        base = self.settings.base_url.rstrip("/")
        return f"{base}/api/v1/accounts/{self.settings.account_id}/conversations"

    def _get(self, params: list[tuple[str, Any]]) -> Any:
        url = f"{self.conversations_url}?{urllib.parse.urlencode(params)}"
        request = urllib.request.Request(
            url,
            headers={
                "Content-Type": "application/json",
                "api_access_token": self.settings.api_token,
            },
        )
        logger.debug("GET conversations", url=url)

        try:
            timeout = self.settings.timeout
            with urllib.request.urlopen(request, timeout=timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as e:
            body = e.read() if e.fp else b""
            detail = body.decode("utf-8", errors="replace")[:200]
            raise TransportError(
                f"Chatwoot returned HTTP {e.code}: {detail or e.reason}",
                status=e.code,
                url=url,
            ) from e
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            reason = getattr(e, "reason", e)
            raise TransportError(f"Cannot reach Chatwoot: {reason}", url=url) from e

        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise TransportError(f"Chatwoot returned invalid JSON: {e}", url=url) from e

    def fetch_page(self, page: int, page_size: int) -> list[dict]:
        """Fetch one page of conversations, contacts included."""
        params = [("include_contact", "true"), ("page", page), ("per_page", page_size)]
        return extract_conversations(self._get(params))

    def list_conversations(
        self,
        page: int = 1,
        label: str | None = None,
        assignee: str | None = None,
        status: str | None = None,
    ) -> ConversationPage:
        """List one page of WhatsApp conversations, enriched.

        Args:
            page: 1-based page number
            label: Only conversations with this label ("all" for no filter)
            assignee: Agent ID, "unassigned", or "all"
            status: open, resolved, pending, snoozed, or "all"
        """
        params: list[tuple[str, Any]] = [("include_contact", "true"), ("page", page)]
        if label and label != "all":
            params.append(("labels[]", label))
        if assignee == "unassigned":
            params.append(("assignee_type", "unassigned"))
        elif assignee and assignee != "all":
            params.extend([("assignee_type", "assigned"), ("assignee_id", assignee)])
        if status and status != "all":
            params.append(("status", status))

        conversations = extract_conversations(self._get(params))
        enriched = enrich_conversations(conversations)
        chats = [c for c in enriched if is_whatsapp_conversation(c)]
        logger.info(
            "Listed conversations", total=len(conversations), whatsapp=len(chats)
        )
        return ConversationPage(chats=chats, fetched=len(conversations))
