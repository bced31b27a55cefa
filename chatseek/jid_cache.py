"""TTL-tracked cache of WhatsApp JIDs enrolled in a campaign.

The workflow engine keeps the authoritative copy (in Redis, behind two
webhooks); this store mirrors it locally so enrolled JIDs can be listed and
checked. Entries expire after their TTL and are swept on every read.
"""

from __future__ import annotations

import http.client
import json
import time
import urllib.error
import urllib.request
from dataclasses import asdict, dataclass
from pathlib import Path

from .logging import ChatSeekError, TransportError, get_logger
from .phone import WHATSAPP_JID_DOMAIN, phone_to_jid

logger = get_logger(__name__)


@dataclass(frozen=True)
class JidEntry:
    value: str
    expiry: float
    added_at: float

    def is_expired(self, now: float) -> bool:
        return bool(self.expiry) and self.expiry <= now


def sweep(entries: dict[str, JidEntry], now: float) -> dict[str, JidEntry]:
    """Return ``entries`` without the ones expired at ``now``."""
    return {key: entry for key, entry in entries.items() if not entry.is_expired(now)}


def validate_jid(jid: str) -> str:
    """Accept a user JID, or a phone number to build one from.

    Raises:
        ChatSeekError: The value is neither
    """
    jid = jid.strip()
    if f"@{WHATSAPP_JID_DOMAIN}" in jid:
        return jid
    built = phone_to_jid(jid)
    if built is None:
        raise ChatSeekError(
            f"Invalid JID '{jid}'. Expected e.g. 5491112345678@{WHATSAPP_JID_DOMAIN}"
        )
    return built


class JidStore:
    """JSON-file store of JidEntry values keyed by prefix + JID."""

    def __init__(self, path: Path, key_prefix: str = "campaign:"):
        self.path = path
        self.key_prefix = key_prefix

    def _key(self, jid: str) -> str:
        return f"{self.key_prefix}{jid}"

    def _load(self) -> dict[str, JidEntry]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text())
            return {key: JidEntry(**data) for key, data in raw.items()}
        except (json.JSONDecodeError, OSError, TypeError, AttributeError) as e:
            logger.warning(
                "Ignoring unreadable JID cache", path=str(self.path), error=str(e)
            )
            return {}

    def _save(self, entries: dict[str, JidEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {key: asdict(entry) for key, entry in entries.items()}
        self.path.write_text(json.dumps(data, indent=2) + "\n")

    def _swept(self, now: float | None) -> dict[str, JidEntry]:
        entries = self._load()
        fresh = sweep(entries, time.time() if now is None else now)
        if len(fresh) != len(entries):
            logger.debug("Swept expired JIDs", removed=len(entries) - len(fresh))
            self._save(fresh)
        return fresh

    def add(self, jid: str, ttl: int, now: float | None = None) -> JidEntry:
        now = time.time() if now is None else now
        entries = self._swept(now)
        entry = JidEntry(value="1", expiry=now + ttl, added_at=now)
        entries[self._key(jid)] = entry
        self._save(entries)
        return entry

    def get(self, jid: str, now: float | None = None) -> JidEntry | None:
        return self._swept(now).get(self._key(jid))

    def remove(self, jid: str) -> bool:
        entries = self._load()
        if entries.pop(self._key(jid), None) is None:
            return False
        self._save(entries)
        return True

    def active(self, now: float | None = None) -> dict[str, JidEntry]:
        """Live entries keyed by bare JID (prefix stripped)."""
        return {
            key[len(self.key_prefix) :]: entry
            for key, entry in self._swept(now).items()
            if key.startswith(self.key_prefix)
        }


class JidWebhook:
    """Bridge to the workflow engine's add/remove JID webhooks."""

    def __init__(self, add_url: str, remove_url: str, timeout: float = 30):
        self.add_url = add_url
        self.remove_url = remove_url
        self.timeout = timeout

    def _post(self, url: str, payload: dict) -> None:
        request = urllib.request.Request(
            url,
            data=json.dumps(payload).encode(),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        logger.info("Calling JID webhook", url=url, jid=payload.get("jid"))
        try:
            with urllib.request.urlopen(request, timeout=self.timeout):
                pass
        except urllib.error.HTTPError as e:
            raise TransportError(
                f"Webhook returned HTTP {e.code}: {e.reason}", status=e.code, url=url
            ) from e
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            reason = getattr(e, "reason", e)
            raise TransportError(f"Cannot reach webhook: {reason}", url=url) from e

    def add(self, jid: str, ttl: int) -> None:
        self._post(self.add_url, {"jid": jid, "ttl": ttl})

    def remove(self, jid: str) -> None:
        self._post(self.remove_url, {"jid": jid})
