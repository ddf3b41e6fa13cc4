"""Tests for pastforward.core.result_store — per-decade state and readiness.

Tests cover:
- ResultEntry status/payload/error consistency.
- Whole-entry transitions, captions, and observer notification.
- Store generations: reset clears everything and discards stale writes.
- The pure readiness predicate and album request assembly.
"""

from __future__ import annotations

import pytest

from pastforward.core.catalog import Catalog
from pastforward.core.result_store import (
    ResultEntry,
    ResultStore,
    Status,
    StoreEvent,
    build_album_request,
    completed_decades,
    entries_in_order,
    is_album_ready,
    missing_decades,
    resolve_caption,
)


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.from_labels(["1950s", "1960s", "1970s"])


@pytest.fixture
def store() -> ResultStore:
    return ResultStore()


class TestResultEntry:
    """Entry constructors and their invariants."""

    def test_pending(self):
        entry = ResultEntry.pending()
        assert entry.status is Status.PENDING
        assert entry.payload is None and entry.error is None

    def test_done(self):
        entry = ResultEntry.done("data:image/png;base64,AAAA")
        assert entry.status is Status.DONE
        assert entry.payload == "data:image/png;base64,AAAA"

    def test_failed(self):
        entry = ResultEntry.failed("quota exceeded")
        assert entry.status is Status.ERROR
        assert entry.error == "quota exceeded"

    def test_done_without_payload_rejected(self):
        with pytest.raises(ValueError):
            ResultEntry(Status.DONE)

    def test_error_without_message_rejected(self):
        with pytest.raises(ValueError):
            ResultEntry(Status.ERROR, error="")

    def test_pending_with_payload_rejected(self):
        with pytest.raises(ValueError):
            ResultEntry(Status.PENDING, payload="data:image/png;base64,AAAA")

    def test_entries_are_immutable(self):
        entry = ResultEntry.pending()
        with pytest.raises(AttributeError):
            entry.status = Status.DONE  # type: ignore[misc]


class TestStoreWrites:
    """Transitions, captions, and reset."""

    def test_absent_decade_reads_pending(self, store: ResultStore):
        assert store.get("1950s") is None
        assert store.status("1950s") is Status.PENDING

    def test_apply_replaces_whole_entry(self, store: ResultStore):
        store.apply("1950s", ResultEntry.failed("boom"))
        store.apply("1950s", ResultEntry.done("data:image/png;base64,AAAA"))
        entry = store.get("1950s")
        assert entry.status is Status.DONE
        assert entry.error is None

    def test_snapshot_is_a_copy(self, store: ResultStore):
        store.apply("1950s", ResultEntry.pending())
        snapshot = store.snapshot()
        store.apply("1960s", ResultEntry.pending())
        assert list(snapshot) == ["1950s"]

    def test_set_and_clear_caption(self, store: ResultStore):
        store.set_caption("1970s", "Groovy Me")
        assert store.get_caption("1970s") == "Groovy Me"
        store.set_caption("1970s", None)
        assert store.get_caption("1970s") is None

    def test_caption_survives_new_entry(self, store: ResultStore):
        store.set_caption("1970s", "Groovy Me")
        store.apply("1970s", ResultEntry.pending())
        store.apply("1970s", ResultEntry.done("data:image/png;base64,AAAA"))
        assert store.get_caption("1970s") == "Groovy Me"

    def test_reset_clears_entries_and_captions(self, store: ResultStore):
        store.apply("1950s", ResultEntry.done("data:image/png;base64,AAAA"))
        store.set_caption("1950s", "Rock and Roll")
        store.reset()
        assert store.snapshot() == {}
        assert store.captions() == {}

    def test_reset_advances_generation(self, store: ResultStore):
        before = store.generation
        store.reset()
        assert store.generation == before + 1

    def test_stale_write_is_discarded(self, store: ResultStore):
        """A write tagged with a pre-reset generation never lands."""
        generation = store.generation
        store.reset()
        assert store.apply("1950s", ResultEntry.done("data:image/png;base64,AAAA"), generation) is False
        assert store.get("1950s") is None

    def test_current_generation_write_lands(self, store: ResultStore):
        assert store.apply("1950s", ResultEntry.pending(), store.generation) is True
        assert store.status("1950s") is Status.PENDING


class TestStoreObservers:
    """Observer notification."""

    def test_observer_receives_transitions(self, store: ResultStore):
        events: list[StoreEvent] = []
        store.subscribe(events.append)
        entry = ResultEntry.pending()
        store.apply("1950s", entry)
        store.set_caption("1950s", "Fifties")
        store.reset()

        assert [event.kind for event in events] == ["transition", "caption", "reset"]
        assert events[0].decade == "1950s"
        assert events[0].entry == entry
        assert events[1].caption == "Fifties"
        assert events[2].generation == store.generation

    def test_stale_write_is_not_published(self, store: ResultStore):
        events: list[StoreEvent] = []
        generation = store.generation
        store.reset()
        store.subscribe(events.append)
        store.apply("1950s", ResultEntry.pending(), generation)
        assert events == []

    def test_unsubscribe(self, store: ResultStore):
        events: list[StoreEvent] = []
        unsubscribe = store.subscribe(events.append)
        unsubscribe()
        store.apply("1950s", ResultEntry.pending())
        assert events == []

    def test_failing_observer_does_not_block_others(self, store: ResultStore):
        events: list[StoreEvent] = []

        def broken(event: StoreEvent) -> None:
            raise RuntimeError("observer bug")

        store.subscribe(broken)
        store.subscribe(events.append)
        store.apply("1950s", ResultEntry.pending())
        assert len(events) == 1
        assert store.status("1950s") is Status.PENDING


class TestReadiness:
    """Pure predicates over snapshots."""

    def _done(self) -> ResultEntry:
        return ResultEntry.done("data:image/png;base64,AAAA")

    def test_empty_snapshot_not_ready(self, catalog: Catalog):
        assert is_album_ready({}, catalog) is False

    def test_all_done_is_ready(self, catalog: Catalog):
        snapshot = {decade_id: self._done() for decade_id in catalog.ids}
        assert is_album_ready(snapshot, catalog) is True

    def test_one_error_blocks_album(self, catalog: Catalog):
        snapshot = {decade_id: self._done() for decade_id in catalog.ids}
        snapshot["1960s"] = ResultEntry.failed("quota exceeded")
        assert is_album_ready(snapshot, catalog) is False
        assert missing_decades(snapshot, catalog) == ["1960s"]

    def test_completed_in_catalog_order(self, catalog: Catalog):
        snapshot = {"1970s": self._done(), "1950s": self._done()}
        assert completed_decades(snapshot, catalog) == ["1950s", "1970s"]

    def test_entries_outside_catalog_ignored(self, catalog: Catalog):
        snapshot = {decade_id: self._done() for decade_id in catalog.ids}
        snapshot["1890s"] = self._done()
        assert completed_decades(snapshot, catalog) == ["1950s", "1960s", "1970s"]

    def test_entries_in_order(self, catalog: Catalog):
        snapshot = {"1960s": self._done()}
        pairs = list(entries_in_order(snapshot, catalog))
        assert [decade for decade, _ in pairs] == ["1950s", "1960s", "1970s"]
        assert pairs[0][1] is None
        assert pairs[1][1] is snapshot["1960s"]


class TestAlbumRequest:
    """Caption resolution and compositor inputs."""

    def test_override_wins(self, catalog: Catalog):
        assert resolve_caption(catalog, "1970s", " Groovy Me ") == "Groovy Me"

    @pytest.mark.parametrize("override", [None, "", "   "])
    def test_blank_override_falls_back_to_label(self, catalog: Catalog, override):
        assert resolve_caption(catalog, "1970s", override) == "1970s"

    def test_build_album_request(self, catalog: Catalog):
        snapshot = {
            decade_id: ResultEntry.done(f"data:image/png;base64,{index}AAA")
            for index, decade_id in enumerate(catalog.ids)
        }
        request = build_album_request(snapshot, {"1970s": "Groovy Me"}, catalog)
        assert request.decades == ["1950s", "1960s", "1970s"]
        assert request.images["1960s"] == "data:image/png;base64,1AAA"
        assert request.captions == {"1950s": "1950s", "1960s": "1960s", "1970s": "Groovy Me"}
