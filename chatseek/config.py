"""Configuration for chatseek.

Settings live in ~/.config/chatseek/config.json. The Chatwoot connection
can also come from the environment (CHATWOOT_URL, CHATWOOT_ACCOUNT_ID,
CHATWOOT_API_TOKEN), which takes precedence over the file.

Use `chatseek config set <key> <value>` to configure, or edit the file
directly.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass

from .logging import ConfigurationError
from .paths import CONFIG_DIR, CONFIG_FILE

# Default configuration values
DEFAULT_CONFIG = {
    "chatwoot_url": "",
    "chatwoot_account_id": "",
    "chatwoot_api_token": "",
    "page_size": 50,
    "max_pages": 100,
    "channel_types": ["api", "whatsapp"],
    "request_timeout": 30,
    "jid_ttl": 86400,
    "jid_key_prefix": "campaign:",
    "jid_webhook_add_url": "",
    "jid_webhook_remove_url": "",
}

# Config key -> environment variable that overrides it
ENV_OVERRIDES = {
    "chatwoot_url": "CHATWOOT_URL",
    "chatwoot_account_id": "CHATWOOT_ACCOUNT_ID",
    "chatwoot_api_token": "CHATWOOT_API_TOKEN",
}

INT_KEYS = {"page_size", "max_pages", "request_timeout", "jid_ttl"}


@dataclass(frozen=True)
class ChatwootSettings:
    """Connection parameters for the Chatwoot API."""

    base_url: str
    account_id: str
    api_token: str
    timeout: float = 30


def _load_config() -> dict:
    """Load configuration from config file."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        data = json.loads(CONFIG_FILE.read_text())
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def get_config() -> dict:
    """Get the full configuration with defaults and env overrides applied."""
    config = {**DEFAULT_CONFIG, **_load_config()}
    for key, env_var in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config[key] = value
    return config


def parse_config_value(key: str, value: str) -> int | str | list[str]:
    """Convert a CLI string to the type stored for ``key``.

    Raises:
        ConfigurationError: Unknown key or a value of the wrong type
    """
    if key not in DEFAULT_CONFIG:
        known = ", ".join(sorted(DEFAULT_CONFIG))
        raise ConfigurationError(f"Unknown config key '{key}'. Known keys: {known}")
    if key in INT_KEYS:
        try:
            number = int(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got '{value}'")
        if number <= 0:
            raise ConfigurationError(f"{key} must be positive, got {number}")
        return number
    if key == "channel_types":
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def set_config_value(key: str, value: int | str | list[str]) -> None:
    """Set a configuration value and persist to file.

    Args:
        key: Configuration key (e.g., "chatwoot_url", "page_size")
        value: Value to set, already converted to its stored type
    """
    # Load existing config
    config = _load_config()

    # Update the value
    config[key] = value

    # Ensure config directory exists
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    CONFIG_FILE.write_text(json.dumps(config, indent=2) + "\n")


def get_chatwoot_settings(config: dict | None = None) -> ChatwootSettings:
    """Build Chatwoot connection settings.

    Raises:
        ConfigurationError: If the URL, account ID or API token is missing
    """
    if config is None:
        config = get_config()

    missing = [
        ENV_OVERRIDES[key]
        for key in ("chatwoot_url", "chatwoot_account_id", "chatwoot_api_token")
        if not str(config.get(key) or "").strip()
    ]
    if missing:
        raise ConfigurationError(
            f"Chatwoot is not configured. Missing: {', '.join(missing)}.\n"
            "Set the environment variables or run "
            "'chatseek config set chatwoot_url <url>' (and account_id, api_token)."
        )

    return ChatwootSettings(
        base_url=str(config["chatwoot_url"]).strip().rstrip("/"),
        account_id=str(config["chatwoot_account_id"]).strip(),
        api_token=str(config["chatwoot_api_token"]).strip(),
        timeout=float(config.get("request_timeout") or 30),
    )


def get_search_options(config: dict | None = None) -> dict:
    """Search defaults (page size, page cap, channel types) from config."""
    if config is None:
        config = get_config()
    return {
        "page_size": int(config.get("page_size") or 50),
        "max_pages": int(config.get("max_pages") or 100),
        "channel_types": tuple(config.get("channel_types") or ("api", "whatsapp")),
    }
