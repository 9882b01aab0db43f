"""Tests for the experience store and its lock."""
from __future__ import annotations

import threading
import time

import pytest
from pydantic import ValidationError

from ai_core.errors import LockTimeoutError, MalformedInputError
from ai_core.memory import Experience, ExperienceStore, ReadWriteLock


class TestExperienceStore:
    """Tests for ExperienceStore basics."""

    def test_append_assigns_id_and_timestamp(self, store):
        exp = store.append("hello world", "test")
        assert exp.id.startswith("exp_")
        assert exp.timestamp.tzinfo is not None
        assert exp.source == "test"
        assert exp.metadata is None

    def test_append_then_get(self, store):
        """Every appended experience is retrievable right away."""
        ids = [store.append(f"entry {i}", "test").id for i in range(10)]
        for exp_id in ids:
            assert store.get(exp_id) is not None
        assert store.get("missing") is None

    def test_count_tracks_appends_and_clears(self, store):
        assert store.is_empty()
        for i in range(5):
            store.append(f"entry {i}", "test")
        assert store.count() == 5
        store.clear()
        assert store.count() == 0
        store.append("after clear", "test")
        assert store.count() == 1
        assert len(store) == 1

    def test_append_accepts_any_content(self, store):
        exp = store.append("", "")
        assert exp.content == ""
        assert store.count() == 1

    def test_search_is_case_insensitive(self, store):
        exp = store.append("Hello World", "test")
        assert store.search("hello") == [exp]
        assert store.search("WORLD") == [exp]
        assert store.search("planet") == []

    def test_search_keeps_insertion_order(self, store):
        first = store.append("coffee one", "a")
        store.append("tea", "b")
        third = store.append("more coffee", "c")
        assert [e.id for e in store.search("coffee")] == [first.id, third.id]

    def test_empty_query_matches_everything(self, populated_store):
        assert len(populated_store.search("")) == populated_store.count()

    def test_list_is_a_copy(self, populated_store):
        listing = populated_store.list()
        listing.clear()
        assert populated_store.count() == 3

    def test_experiences_are_immutable(self, store):
        exp = store.append("fixed", "test")
        with pytest.raises(ValidationError):
            exp.content = "changed"

    def test_ids_are_unique(self, store):
        ids = {store.append("same", "same").id for _ in range(200)}
        assert len(ids) == 200

    def test_stats(self, populated_store):
        stats = populated_store.stats()
        assert stats["total_experiences"] == 3
        assert stats["sources"] == {"diary": 2, "notes": 1}

    def test_from_experiences(self):
        exps = [Experience(content="a", source="s"), Experience(content="b", source="s")]
        store = ExperienceStore.from_experiences(exps)
        assert [e.id for e in store.list()] == [e.id for e in exps]

    def test_from_experiences_rejects_duplicate_ids(self):
        exp = Experience(content="twice", source="s")
        with pytest.raises(MalformedInputError, match="Duplicate"):
            ExperienceStore.from_experiences([exp, exp])


class TestStoreConcurrency:
    """Concurrent access to a shared store."""

    def test_concurrent_appends_are_all_present(self, store):
        n_threads, per_thread = 8, 50
        results: list[list[str]] = [[] for _ in range(n_threads)]

        def writer(slot):
            for i in range(per_thread):
                results[slot].append(store.append(f"t{slot} e{i}", f"thread-{slot}").id)

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(n_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        all_ids = [exp_id for ids in results for exp_id in ids]
        assert len(set(all_ids)) == n_threads * per_thread
        assert {e.id for e in store.list()} == set(all_ids)

    def test_readers_never_see_partial_records(self, store):
        stop = threading.Event()
        problems: list[str] = []

        def reader():
            while not stop.is_set():
                for exp in store.list():
                    if not exp.id or exp.content is None or exp.source is None:
                        problems.append(exp.id)
                store.search("entry")

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        for i in range(300):
            store.append(f"entry {i}", "writer")
        stop.set()
        for t in readers:
            t.join()

        assert problems == []
        assert store.count() == 300


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    def test_multiple_readers(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        lock.acquire_read()
        assert lock.readers == 2
        lock.release_read()
        lock.release_read()
        assert lock.readers == 0

    def test_writer_is_exclusive(self):
        lock = ReadWriteLock(timeout_s=0.05)
        with lock.write():
            assert lock.write_locked
            with pytest.raises(LockTimeoutError):
                lock.acquire_read()
        assert not lock.write_locked

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        acquired = threading.Event()
        lock.acquire_read()

        def writer():
            with lock.write():
                acquired.set()

        t = threading.Thread(target=writer)
        t.start()
        time.sleep(0.05)
        assert not acquired.is_set()
        lock.release_read()
        t.join(timeout=1.0)
        assert acquired.is_set()

    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        t = threading.Thread(target=lambda: (lock.acquire_write(), lock.release_write()))
        t.start()
        time.sleep(0.05)

        with pytest.raises(LockTimeoutError):
            lock.acquire_read(timeout_s=0.05)

        lock.release_read()
        t.join(timeout=1.0)
        assert not t.is_alive()

    def test_timed_out_writer_releases_queued_readers(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        with pytest.raises(LockTimeoutError):
            lock.acquire_write(timeout_s=0.05)
        # A new reader must not be blocked by the abandoned writer
        lock.acquire_read(timeout_s=0.5)
        lock.release_read()
        lock.release_read()

    def test_release_without_acquire(self):
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            lock.release_read()

    def test_store_lock_timeout(self):
        store = ExperienceStore(lock_timeout_s=0.05)
        store._lock.acquire_write()
        try:
            with pytest.raises(LockTimeoutError):
                store.count()
        finally:
            store._lock.release_write()
        assert store.count() == 0
