"""Tests for the paginated conversation search."""

from __future__ import annotations

import threading
import time

import pytest

from chatseek.logging import ConfigurationError
from chatseek.search import (
    SearchResult,
    StopReason,
    is_target_channel,
    normalize_targets,
    search_by_phones,
    search_conversations,
)
from tests.fixtures.conversations import (
    FakeConversationSource,
    filler,
    make_conversation,
    transport_error,
)


class TestNormalizeTargets:
    """Tests for caller input handling."""

    def test_drops_unusable_and_duplicates(self):
        """Test normalization, filtering and dedup in input order."""
        raw = ["+54 9 11 6544-2102", "123", None, "5491165442102", "WAID:5491199990000"]
        assert normalize_targets(raw) == ["5491165442102", "5491199990000"]

    def test_non_list_input(self):
        """Test that strings and None count as no input."""
        assert normalize_targets("5491165442102") == []
        assert normalize_targets(None) == []

    def test_tuple_input(self):
        """Test that tuples are accepted."""
        assert normalize_targets(("5491165442102",)) == ["5491165442102"]


class TestIsTargetChannel:
    """Tests for the channel filter."""

    def test_inbox_channel(self):
        """Test the top-level inbox."""
        record = make_conversation(1, channel_type="whatsapp")
        assert is_target_channel(record, ("api", "whatsapp"))

    def test_meta_inbox_channel(self):
        """Test the inbox nested under meta."""
        record = {"id": 1, "meta": {"inbox": {"channel_type": "api"}}}
        assert is_target_channel(record, ("api",))

    def test_other_channel(self):
        """Test that email and unknown inboxes are skipped."""
        email = make_conversation(1, channel_type="email")
        assert not is_target_channel(email, ("api",))
        assert not is_target_channel(make_conversation(1, channel_type=None), ("api",))


class TestSearchConversations:
    """Tests for search_conversations."""

    def test_no_usable_targets_skips_source(self):
        """Test that invalid input returns at once without fetching."""
        source = FakeConversationSource([filler(3)])
        result = search_conversations(["123", "", None], source)
        assert result.matches == []
        assert result.unresolved == []
        assert result.stop_reason is StopReason.NO_TARGETS
        assert source.requested == []

    def test_non_list_targets(self):
        """Test that a bare string is invalid input, not an error."""
        source = FakeConversationSource([filler(3)])
        result = search_conversations("5491165442102", source)
        assert result.matches == []
        assert source.requested == []

    def test_end_to_end_scenario(self):
        """Test one match on page 1 and an unresolved second target."""
        match = make_conversation(1, sender_identifier="5491165442102@messaging.net")
        source = FakeConversationSource(
            [[match, *filler(2)], filler(1, 2000), filler(1, 3000)]
        )
        result = search_conversations(
            ["5491165442102", "+54 9 11 9999-0000"], source, page_size=3
        )
        assert [c["id"] for c in result.matches] == [1]
        assert result.unresolved == ["5491199990000"]
        assert result.stop_reason is StopReason.SHORT_PAGE
        assert source.requested == [1, 2]

    def test_matches_are_enriched(self):
        """Test that returned records carry the enriched fields."""
        match = make_conversation(1, source_id="WAID:5491165442102")
        source = FakeConversationSource([[match]])
        result = search_conversations(["5491165442102"], source)
        assert result.matches[0]["enriched_phone_number"] == "5491165442102"
        assert result.matches[0]["enriched_phone_raw"] == "WAID:5491165442102"

    def test_stops_when_all_found(self):
        """Test that page 2 is never requested once page 1 resolves everything."""
        page1 = [make_conversation(1, sender_phone="+5491165442102"), *filler(2)]
        source = FakeConversationSource([page1, filler(3, 2000)])
        result = search_conversations(["5491165442102"], source, page_size=3)
        assert source.requested == [1]
        assert result.stop_reason is StopReason.ALL_FOUND
        assert result.unresolved == []
        assert result.complete

    def test_stops_on_short_page(self):
        """Test that a short page ends the search with targets pending."""
        late_match = make_conversation(9, sender_phone="5491165442102")
        source = FakeConversationSource([filler(2), [late_match]])
        result = search_conversations(["5491165442102"], source, page_size=3)
        assert source.requested == [1]
        assert result.matches == []
        assert result.unresolved == ["5491165442102"]
        assert result.stop_reason is StopReason.SHORT_PAGE

    def test_stops_on_empty_page(self):
        """Test that an empty page ends the search."""
        source = FakeConversationSource([filler(2)])
        result = search_conversations(["5491165442102"], source, page_size=2)
        assert source.requested == [1, 2]
        assert result.stop_reason is StopReason.NO_MORE_DATA
        assert result.pages_fetched == 2

    def test_page_cap(self):
        """Test that the page cap bounds the scan and is not an error."""
        pages = [filler(2, 1000 + 10 * i) for i in range(10)]
        source = FakeConversationSource(pages)
        result = search_conversations(
            ["5491165442102"], source, page_size=2, max_pages=3
        )
        assert source.requested == [1, 2, 3]
        assert result.stop_reason is StopReason.PAGE_CAP
        assert result.unresolved == ["5491165442102"]
        assert result.error is None

    def test_page_size_is_fixed(self):
        """Test that every request uses the same page size."""
        source = FakeConversationSource([filler(4), filler(4, 2000), filler(1, 3000)])
        search_conversations(["5491165442102"], source, page_size=4)
        assert source.page_sizes == [4, 4, 4]

    def test_transport_error_keeps_partial_results(self):
        """Test that a failing page 2 returns what page 1 found."""
        page1 = [make_conversation(1, contact_phone="5491165442102"), *filler(1)]
        source = FakeConversationSource([page1], errors={2: transport_error(502)})
        result = search_conversations(
            ["5491165442102", "5491199990000"], source, page_size=2
        )
        assert [c["id"] for c in result.matches] == [1]
        assert result.unresolved == ["5491199990000"]
        assert result.stop_reason is StopReason.TRANSPORT_ERROR
        assert "502" in result.error
        assert not result.complete

    def test_transport_error_without_matches(self):
        """Test an error on page 2 after a page with no matches."""
        source = FakeConversationSource([filler(2)], errors={2: transport_error()})
        targets = ["+54 9 11 6544-2102", "5491199990000"]
        result = search_conversations(targets, source, page_size=2)
        assert result.matches == []
        assert result.unresolved == ["5491165442102", "5491199990000"]
        assert result.pages_fetched == 1

    def test_one_target_consumed_once(self):
        """Test that two records with the same phone give one match."""
        page = [
            make_conversation(1, sender_phone="5491165442102"),
            make_conversation(2, sender_phone="5491165442102"),
        ]
        source = FakeConversationSource([page])
        result = search_conversations(["5491165442102"], source, page_size=5)
        assert [c["id"] for c in result.matches] == [1]

    def test_record_matches_at_most_one_target(self):
        """Test that a record satisfying two targets consumes only one."""
        page = [make_conversation(1, sender_phone="5491112345678")]
        source = FakeConversationSource([page])
        result = search_conversations(
            ["5491112345678", "91112345678"], source, page_size=5
        )
        assert len(result.matches) == 1
        assert result.unresolved == ["91112345678"]

    def test_duplicate_record_does_not_consume_target(self):
        """Test that a record seen again on a later page is skipped."""
        repeat = make_conversation(7, sender_phone="5491112345678")
        other = make_conversation(8, sender_phone="91112345678")
        source = FakeConversationSource([[repeat, *filler(1)], [repeat, other]])
        result = search_conversations(
            ["5491112345678", "91112345678"], source, page_size=2
        )
        assert [c["id"] for c in result.matches] == [7, 8]
        assert result.stop_reason is StopReason.ALL_FOUND

    def test_discovery_order(self):
        """Test that matches keep the order they were found in."""
        page1 = [make_conversation(5, sender_phone="5491199990000"), *filler(1)]
        page2 = [make_conversation(3, sender_phone="5491165442102")]
        source = FakeConversationSource([page1, page2])
        result = search_conversations(
            ["5491165442102", "5491199990000"], source, page_size=2
        )
        assert [c["id"] for c in result.matches] == [5, 3]

    def test_other_channels_ignored(self):
        """Test that non-WhatsApp inboxes never match."""
        email = make_conversation(
            1, channel_type="email", contact_phone="5491165442102"
        )
        source = FakeConversationSource([[email]])
        result = search_conversations(["5491165442102"], source, page_size=5)
        assert result.matches == []

    def test_custom_channel_types(self):
        """Test overriding the channel filter."""
        sms = make_conversation(1, channel_type="sms", contact_phone="5491165442102")
        source = FakeConversationSource([[sms]])
        result = search_conversations(
            ["5491165442102"], source, page_size=5, channel_types=["sms"]
        )
        assert [c["id"] for c in result.matches] == [1]

    def test_suffix_tier_in_search(self):
        """Test that a number stored without country code still matches."""
        local = make_conversation(1, contact_phone="11 6544-2102")
        source = FakeConversationSource([[local]])
        result = search_conversations(["+54 9 11 6544-2102"], source, page_size=5)
        assert [c["id"] for c in result.matches] == [1]

    def test_record_without_phone_skipped(self):
        """Test that records with no usable phone never match."""
        nameless = make_conversation(1, contact_identifier="crm-1")
        source = FakeConversationSource([[nameless]])
        result = search_conversations(["5491165442102"], source, page_size=5)
        assert result.matches == []

    def test_expired_deadline(self):
        """Test that an expired deadline stops before any fetch."""
        source = FakeConversationSource([filler(2)])
        result = search_conversations(
            ["5491165442102"], source, deadline=time.monotonic() - 1
        )
        assert source.requested == []
        assert result.stop_reason is StopReason.DEADLINE
        assert result.unresolved == ["5491165442102"]

    def test_cancel_between_pages(self):
        """Test that a cancel event set during page 1 stops before page 2."""
        cancel = threading.Event()

        class CancellingSource(FakeConversationSource):
            def fetch_page(self, page, page_size):
                records = super().fetch_page(page, page_size)
                cancel.set()
                return records

        source = CancellingSource([filler(2), filler(2, 2000)])
        result = search_conversations(
            ["5491165442102"], source, page_size=2, cancel=cancel
        )
        assert source.requested == [1]
        assert result.stop_reason is StopReason.CANCELLED
        assert result.pages_fetched == 1


class TestSearchResult:
    """Tests for SearchResult serialization."""

    def test_to_dict(self):
        """Test the plain-data form."""
        result = SearchResult(
            matches=[{"id": 1}],
            unresolved=["5491199990000"],
            pages_fetched=2,
            stop_reason=StopReason.SHORT_PAGE,
        )
        assert result.to_dict() == {
            "matches": [{"id": 1}],
            "unresolved": ["5491199990000"],
            "total": 1,
            "pages_fetched": 2,
            "stop_reason": "short_page",
            "error": None,
        }


class TestSearchByPhones:
    """Tests for the search_by_phones entry point."""

    def test_with_source(self):
        """Test the plain-data result with an explicit source."""
        match = make_conversation(1, sender_identifier="5491165442102@s.whatsapp.net")
        source = FakeConversationSource([[match]])
        result = search_by_phones(["5491165442102", "5491199990000"], source)
        assert [c["id"] for c in result["matches"]] == [1]
        assert result["unresolved"] == ["5491199990000"]

    def test_invalid_input_needs_no_config(self):
        """Test that invalid input returns empty even when unconfigured."""
        result = search_by_phones(["12"])
        assert result["matches"] == []
        assert result["unresolved"] == []
        assert result["stop_reason"] == "no_targets"

    def test_missing_config_is_fatal(self):
        """Test that missing Chatwoot settings fail before any request."""
        with pytest.raises(ConfigurationError, match="CHATWOOT_API_TOKEN"):
            search_by_phones(["5491165442102"])

    def test_builds_client_from_config(self, chatwoot_env, monkeypatch):
        """Test that configured settings and page size reach the client."""
        calls = []

        def fake_fetch_page(self, page, page_size):
            calls.append((self.settings.base_url, page, page_size))
            return [make_conversation(1, contact_phone="5491165442102")]

        monkeypatch.setattr(
            "chatseek.chatwoot.ChatwootClient.fetch_page", fake_fetch_page
        )
        result = search_by_phones(["5491165442102"])
        assert calls == [("https://chatwoot.example.com", 1, 50)]
        assert result["total"] == 1

    def test_options_override_config(self, chatwoot_env, monkeypatch):
        """Test that explicit options beat configured defaults."""
        calls = []

        def fake_fetch_page(self, page, page_size):
            calls.append(page_size)
            return []

        monkeypatch.setattr(
            "chatseek.chatwoot.ChatwootClient.fetch_page", fake_fetch_page
        )
        search_by_phones(["5491165442102"], page_size=10, timeout=30)
        assert calls == [10]
