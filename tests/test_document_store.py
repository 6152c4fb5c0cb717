"""Tests for the document store."""
import pytest

from urlcoin.services.document_store import DocumentNotFoundError, WriteConflictError


class TestReadWrite:
    """Test reads, replaces and merges."""

    def test_missing_document_reads_none(self, store):
        assert store.get("users", "nobody") is None
        assert store.read("users", "nobody") is None

    def test_set_creates_then_replaces(self, store):
        assert store.set("users", "u1", {"nickname": "a", "cash": 1}) == 1
        assert store.set("users", "u1", {"nickname": "b"}) == 2
        # Replace drops fields not in the new document
        assert store.read("users", "u1") == {"nickname": "b"}

    def test_update_merges_top_level_fields(self, store):
        store.set("users", "u1", {"nickname": "a", "cash": 1})
        version = store.update("users", "u1", {"cash": 5})
        assert version == 2
        assert store.read("users", "u1") == {"nickname": "a", "cash": 5}

    def test_update_missing_document_raises(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update("users", "ghost", {"cash": 1})

    def test_returned_data_is_a_copy(self, store):
        store.set("users", "u1", {"holdings": {"c1": {"qty": 1}}})
        data = store.read("users", "u1")
        data["holdings"]["c1"]["qty"] = 99
        assert store.read("users", "u1")["holdings"]["c1"]["qty"] == 1


class TestConditionalUpdate:
    """Test version-checked writes."""

    def test_matching_version_applies(self, store):
        store.set("users", "u1", {"cash": 1})
        snapshot = store.get("users", "u1")
        store.update("users", "u1", {"cash": 2}, expected_version=snapshot.version)
        assert store.get("users", "u1").version == snapshot.version + 1

    def test_second_writer_from_same_read_conflicts(self, store):
        """Two writers that read the same version cannot both win."""
        store.set("users", "u1", {"cash": 100})
        first = store.get("users", "u1")
        second = store.get("users", "u1")

        store.update("users", "u1", {"cash": 90}, expected_version=first.version)
        with pytest.raises(WriteConflictError):
            store.update("users", "u1", {"cash": 80}, expected_version=second.version)

        assert store.read("users", "u1")["cash"] == 90

    def test_unconditional_update_is_last_writer_wins(self, store):
        store.set("users", "u1", {"cash": 100})
        store.update("users", "u1", {"cash": 90})
        store.update("users", "u1", {"cash": 80})
        assert store.read("users", "u1")["cash"] == 80


class TestQueries:
    """Test collection queries."""

    def test_query_equals_string(self, store):
        store.set("users", "u1", {"nickname": "키위왕"})
        store.set("users", "u2", {"nickname": "여우"})
        matches = store.query_equals("users", "nickname", "키위왕")
        assert [m.doc_id for m in matches] == ["u1"]

    def test_query_equals_bool_and_int(self, store):
        store.set("users", "u1", {"isAdmin": True, "cash": 10})
        store.set("users", "u2", {"isAdmin": False, "cash": 20})
        assert [m.doc_id for m in store.query_equals("users", "isAdmin", True)] == ["u1"]
        assert [m.doc_id for m in store.query_equals("users", "cash", 20)] == ["u2"]

    def test_list_all_is_scoped_to_collection(self, store):
        store.set("users", "u1", {})
        store.set("users", "u2", {})
        assert {s.doc_id for s in store.list_all("users")} == {"u1", "u2"}
        assert {s.doc_id for s in store.list_all("system")} == {"market"}


class TestSubscribe:
    """Test change subscriptions."""

    def test_current_value_delivered_immediately(self, store):
        store.set("system", "news", {"text": "hello"})
        received = []
        store.subscribe("system", "news", received.append)
        assert received == [{"text": "hello"}]

    def test_every_write_delivers_full_field_set(self, store):
        received = []
        store.subscribe("system", "news", received.append)
        assert received == []

        store.set("system", "news", {"text": "a", "extra": 1})
        store.update("system", "news", {"text": "b"})
        assert received == [{"text": "a", "extra": 1}, {"text": "b", "extra": 1}]

    def test_unsubscribe_stops_delivery(self, store):
        received = []
        unsubscribe = store.subscribe("system", "news", received.append)
        unsubscribe()
        store.set("system", "news", {"text": "ignored"})
        assert received == []

    def test_failing_listener_does_not_break_writes(self, store):
        def broken(data):
            raise RuntimeError("listener bug")

        received = []
        store.subscribe("system", "news", broken)
        store.subscribe("system", "news", received.append)
        store.set("system", "news", {"text": "still delivered"})
        assert received == [{"text": "still delivered"}]
