"""Shared pagination utilities for CLI output."""

from __future__ import annotations


def paginated_output(
    key: str, items: list, page: int, next_page: int | None = None
) -> dict:
    """Build paginated output dict with optional nextPage.

    Args:
        key: The key name for the items list (e.g., "chats")
        items: The list of items to include
        page: The 1-based page these items came from
        next_page: Page to request next, if the source may have more

    Returns:
        Dict with items under the specified key, the page number, and
        optionally nextPage
    """
    output: dict = {key: items, "page": page}
    if next_page:
        output["nextPage"] = next_page
    return output
