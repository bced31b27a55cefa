"""Main CLI entry point for chatseek."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import click

from .chatwoot import ChatwootClient
from .config import (
    DEFAULT_CONFIG,
    get_chatwoot_settings,
    get_config,
    parse_config_value,
    set_config_value,
)
from .errors import ErrorHandlingGroup
from .extract import lookup
from .input import read_lines_stdin
from .jid_cache import JidStore, JidWebhook, validate_jid
from .logging import ChatSeekError, TransportError, configure_logging, get_logger
from .pagination import paginated_output
from .paths import JID_CACHE_FILE
from .phone import normalize_phone
from .search import search_by_phones

logger = get_logger(__name__)

SECRET_KEYS = {"chatwoot_api_token"}


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def summarize_conversation(chat: dict) -> dict:
    """Compact view of an enriched conversation for JSON output."""
    name = lookup(chat, "meta", "sender", "name") or lookup(chat, "contact", "name")
    return {
        "id": chat.get("id"),
        "name": name,
        "phone": chat.get("enriched_phone_number"),
        "identifier": chat.get("enriched_identifier"),
        "status": chat.get("status"),
        "inbox_id": chat.get("inbox_id"),
    }


@click.group(cls=ErrorHandlingGroup)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging to stderr")
@click.option(
    "--json-log",
    metavar="FILE",
    envvar="CHATSEEK_LOG",
    default="auto",
    help='JSON log file path (default: auto, "-" for stdout, "none" to disable)',
)
def cli(verbose: bool, json_log: str):
    """chatseek: find Chatwoot WhatsApp conversations by phone number."""
    # Allow "none" to disable file logging
    log_file = None if json_log == "none" else json_log
    configure_logging(verbose=verbose, json_log=log_file)


@cli.command()
@click.argument("phones", nargs=-1, required=True)
@click.option("--page-size", type=click.IntRange(min=1), help="Conversations per page")
@click.option("--max-pages", type=click.IntRange(min=1), help="Maximum pages to scan")
@click.option("--timeout", type=float, help="Stop paging after this many seconds")
@click.option("--full", is_flag=True, help="Output whole conversation records")
def search(
    phones: tuple[str, ...],
    page_size: int | None,
    max_pages: int | None,
    timeout: float | None,
    full: bool,
):
    """Find the conversations of one or more phone numbers.

    PHONES: Numbers in any format (+54 9 11 1234-5678, JIDs, WAID:...).
    Use "-" to read one number per line from stdin.

    Scans conversation pages until every number is found, the pages run
    out, or the page cap is hit. Numbers never found are listed under
    "unresolved"; a failed page still returns the matches found so far.

    \b
    Examples:
        chatseek search "+54 9 11 6544-2102"
        chatseek search 5491165442102 5491199990000 --max-pages 20
        cat phones.txt | chatseek search -
    """
    values = [p for p in phones if p != "-"]
    if "-" in phones:
        values.extend(read_lines_stdin())

    options = {}
    if page_size is not None:
        options["page_size"] = page_size
    if max_pages is not None:
        options["max_pages"] = max_pages

    result = search_by_phones(values, timeout=timeout, **options)
    if result["stop_reason"] == "no_targets":
        logger.warning("None of the given values is a usable phone number")
    if result["error"]:
        logger.warning("Search incomplete", error=result["error"])
    if not full:
        result["matches"] = [summarize_conversation(c) for c in result["matches"]]
    _echo_json(result)


@cli.command()
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page number")
@click.option("--label", help="Only conversations with this label")
@click.option("--assignee", help='Agent ID, "unassigned", or "all"')
@click.option(
    "--status",
    "status_filter",
    type=click.Choice(["open", "resolved", "pending", "snoozed", "all"]),
    help="Conversation status",
)
@click.option("--full", is_flag=True, help="Output whole conversation records")
def chats(
    page: int,
    label: str | None,
    assignee: str | None,
    status_filter: str | None,
    full: bool,
):
    """List one page of WhatsApp conversations with their phone numbers."""
    client = ChatwootClient(get_chatwoot_settings())
    result = client.list_conversations(
        page=page, label=label, assignee=assignee, status=status_filter
    )
    items = result.chats
    if not items:
        logger.info("No conversations found", page=page, fetched=result.fetched)
    if not full:
        items = [summarize_conversation(c) for c in items]
    # Filtering can empty a page that still has successors
    next_page = page + 1 if result.fetched else None
    _echo_json(paginated_output("chats", items, page, next_page))


@cli.command()
@click.argument("values", nargs=-1, required=True)
def normalize(values: tuple[str, ...]):
    """Show how phone values normalize for matching.

    \b
    Examples:
        chatseek normalize "WAID:+5491112345678" "5491112345678@s.whatsapp.net"
    """
    _echo_json([{"input": v, "normalized": normalize_phone(v)} for v in values])


@cli.command()
def status():
    """Show Chatwoot configuration and connectivity."""
    settings = get_config()
    click.echo("Chatwoot:")
    for key in ("chatwoot_url", "chatwoot_account_id", "chatwoot_api_token"):
        label = key.removeprefix("chatwoot_")
        if settings.get(key):
            click.echo(f"  {label}: " + click.style("set", fg="green"))
        else:
            click.echo(f"  {label}: " + click.style("missing", fg="yellow"))

    try:
        client = ChatwootClient(get_chatwoot_settings(settings))
    except ChatSeekError:
        click.echo("  Run 'chatseek config set <key> <value>' to configure.")
        return

    try:
        client.fetch_page(1, 1)
        click.echo("  API: " + click.style("OK", fg="green"))
    except TransportError as e:
        click.echo("  API: " + click.style(f"Error - {e}", fg="red"))


@cli.group()
def config():
    """Show or change settings."""


@config.command("show")
def config_show():
    """Show the effective configuration (secrets masked)."""
    values = get_config()
    for key in SECRET_KEYS:
        if values.get(key):
            values[key] = "********"
    _echo_json(values)


@config.command("set")
@click.argument("key", type=click.Choice(sorted(DEFAULT_CONFIG)))
@click.argument("value")
def config_set(key: str, value: str):
    """Set KEY to VALUE in the config file.

    channel_types takes a comma-separated list (e.g. "api,whatsapp").
    """
    set_config_value(key, parse_config_value(key, value))
    click.echo(f"Set {key}.")


def _jid_store() -> JidStore:
    return JidStore(JID_CACHE_FILE, key_prefix=get_config()["jid_key_prefix"])


def _format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@cli.group()
def jids():
    """Manage the campaign JID cache."""


@jids.command("list")
def jids_list():
    """List JIDs that have not expired."""
    entries = _jid_store().active()
    _echo_json(
        {
            "jids": [
                {"jid": jid, "value": e.value, "expiry": _format_time(e.expiry)}
                for jid, e in entries.items()
            ],
            "total": len(entries),
        }
    )


@jids.command("check")
@click.argument("jid")
def jids_check(jid: str):
    """Check whether JID is in the cache."""
    jid = validate_jid(jid)
    entry = _jid_store().get(jid)
    _echo_json(
        {
            "jid": jid,
            "exists": entry is not None,
            "expiry": _format_time(entry.expiry) if entry else None,
        }
    )


@jids.command("add")
@click.argument("jid")
@click.option("--ttl", type=click.IntRange(min=1), help="Seconds until expiry")
def jids_add(jid: str, ttl: int | None):
    """Add JID (or a phone number) to the cache.

    When jid_webhook_add_url is configured the workflow engine is notified
    first; the local cache is only updated if that succeeds.
    """
    settings = get_config()
    jid = validate_jid(jid)
    ttl = ttl or int(settings["jid_ttl"])

    if settings["jid_webhook_add_url"]:
        webhook = JidWebhook(
            settings["jid_webhook_add_url"], settings["jid_webhook_remove_url"]
        )
        webhook.add(jid, ttl)

    entry = _jid_store().add(jid, ttl)
    _echo_json({"jid": jid, "ttl": ttl, "expiry": _format_time(entry.expiry)})


@jids.command("remove")
@click.argument("jid")
def jids_remove(jid: str):
    """Remove JID from the cache."""
    settings = get_config()
    jid = validate_jid(jid)

    if settings["jid_webhook_remove_url"]:
        webhook = JidWebhook(
            settings["jid_webhook_add_url"], settings["jid_webhook_remove_url"]
        )
        webhook.remove(jid)

    removed = _jid_store().remove(jid)
    _echo_json({"jid": jid, "removed": removed})


@cli.command()
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish"]))
def completions(shell: str):
    """Generate shell completion script.

    \b
    Bash (~/.bashrc):
        eval "$(chatseek completions bash)"
    """
    from click.shell_completion import get_completion_class

    comp_cls = get_completion_class(shell)
    if comp_cls is None:
        raise ChatSeekError(f"Unsupported shell: {shell}")

    comp = comp_cls(cli, {}, "chatseek", "_CHATSEEK_COMPLETE")
    click.echo(comp.source())
