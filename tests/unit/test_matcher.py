"""Tests for key lookup over parsed listings."""

from __future__ import annotations

from gpg_adapter.matcher import find_all, find_first, key_exists, record_matches
from gpg_adapter.types import KeyRecord


class TestRecordMatches:
    def test_matches_any_field(self, alice: KeyRecord) -> None:
        """Test fingerprint, uid, subkey and key lines are all searched."""
        assert record_matches(alice.fingerprint, alice)
        assert record_matches("alice@example.com", alice)
        assert record_matches("cv25519", alice)
        assert record_matches("ed25519", alice)

    def test_substring(self, alice: KeyRecord) -> None:
        assert record_matches(alice.fingerprint[-8:], alice)

    def test_case_sensitive(self, alice: KeyRecord) -> None:
        assert not record_matches("ALICE", alice)
        assert not record_matches(alice.fingerprint.lower(), alice)

    def test_kind_is_not_searched(self, alice: KeyRecord) -> None:
        assert not record_matches("primary", alice)


class TestFind:
    """Test find_first, find_all and key_exists."""

    def test_find_first(self, alice: KeyRecord, bob: KeyRecord) -> None:
        assert find_first("Bob", [alice, bob]) == bob

    def test_find_first_returns_first_in_order(self, alice: KeyRecord, bob: KeyRecord) -> None:
        assert find_first("example.com", [alice, bob]) == alice
        assert find_first("example.com", [bob, alice]) == bob

    def test_find_all(self, alice: KeyRecord, bob: KeyRecord) -> None:
        assert find_all("example.com", [alice, bob]) == [alice, bob]
        assert find_all(bob.fingerprint, [alice, bob]) == [bob]

    def test_nonexistent(self, alice: KeyRecord, bob: KeyRecord) -> None:
        assert find_all("nonexistent", [alice, bob]) == []
        assert find_first("nonexistent", [alice, bob]) is None
        assert not key_exists("nonexistent", [alice, bob])

    def test_key_exists(self, alice: KeyRecord) -> None:
        assert key_exists("Alice", [alice])

    def test_empty_identifier_matches_everything(self, alice: KeyRecord, bob: KeyRecord) -> None:
        assert find_all("", [alice, bob]) == [alice, bob]

    def test_non_list_input_is_empty(self, alice: KeyRecord) -> None:
        """Test whatever a failed listing returned yields no matches."""
        for bad in (None, "Alice", 42, {"pub": [alice]}):
            assert find_all("Alice", bad) == []
            assert find_first("Alice", bad) is None
            assert not key_exists("Alice", bad)

    def test_tuple_input(self, alice: KeyRecord) -> None:
        assert find_all("Alice", (alice,)) == [alice]

    def test_foreign_items_skipped(self, alice: KeyRecord) -> None:
        assert find_all("Alice", ["Alice", alice, None]) == [alice]
