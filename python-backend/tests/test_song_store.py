import json

import pytest

from songsmith.models.analysis import SongAnalysis
from songsmith.services.history_storage import HISTORY_KEY, JsonFileStorage, MemoryStorage
from songsmith.services.song_store import SongStore


class FailingStorage:
    def load(self, key):
        raise OSError("disk gone")

    def save(self, key, payload):
        raise OSError("disk full")


class TestSongStoreMutations:
    def test_insert_at_front_orders_newest_first(self, store, make_song):
        """New songs go to the front of history."""
        first, second = make_song(title="First"), make_song(title="Second")
        store.insert_at_front(first)
        store.insert_at_front(second)
        assert [s.title for s in store.songs] == ["Second", "First"]

    def test_insert_duplicate_id_rejected(self, store, make_song):
        """Ids stay unique within history."""
        song = make_song()
        store.insert_at_front(song)
        with pytest.raises(ValueError):
            store.insert_at_front(song)
        assert len(store) == 1

    def test_replace_swaps_one_song(self, store, make_song):
        """replace() applies the mutator to the matching song only."""
        a, b = make_song(title="A"), make_song(title="B")
        store.insert_at_front(a)
        store.insert_at_front(b)

        updated = store.replace(a.id, lambda s: s.model_copy(update={"title": "A2"}))

        assert updated.title == "A2"
        assert store.get(a.id).title == "A2"
        assert store.get(b.id) is b

    def test_replace_unknown_id_is_noop(self, store, storage, make_song):
        """Writes for songs that are gone are dropped without persisting."""
        store.insert_at_front(make_song())
        before = storage.slots[HISTORY_KEY]

        result = store.replace("missing", lambda s: s.model_copy(update={"title": "x"}))

        assert result is None
        assert storage.slots[HISTORY_KEY] == before

    def test_replace_rejects_id_change(self, store, make_song):
        song = make_song()
        store.insert_at_front(song)
        with pytest.raises(ValueError):
            store.replace(song.id, lambda s: s.model_copy(update={"id": "other"}))

    def test_replace_returning_same_song_skips_persist(self, store, make_song):
        """A mutator that declines to change anything does not trigger a write."""
        calls = []

        class CountingStorage(MemoryStorage):
            def save(self, key, payload):
                calls.append(key)
                super().save(key, payload)

        counted = SongStore(CountingStorage())
        song = make_song()
        counted.insert_at_front(song)
        calls.clear()

        assert counted.replace(song.id, lambda s: s) is song
        assert calls == []

    def test_current_is_looked_up_fresh(self, store, make_song):
        """After a merge, current returns the merged song, not a stale copy."""
        song = make_song()
        store.insert_at_front(song)
        store.set_current(song.id)
        analysis = SongAnalysis(overall_score=78, projected_score=88)

        store.replace(song.id, lambda s: s.model_copy(update={"analysis": analysis}))

        assert store.current.analysis == analysis

    def test_set_current_unknown_clears_selection(self, store, make_song):
        song = make_song()
        store.insert_at_front(song)
        store.set_current(song.id)

        assert store.set_current("nope") is None
        assert store.current_id is None

    def test_clear_all(self, store, storage, make_song):
        """Clearing empties history, drops the pointer and persists the empty list."""
        song = make_song()
        store.insert_at_front(song)
        store.set_current(song.id)

        store.clear_all()

        assert len(store) == 0
        assert store.current is None
        assert json.loads(storage.slots[HISTORY_KEY]) == []


class TestSongStorePersistence:
    def test_load_history_restores_and_selects_first(self, storage, make_song):
        """Reloading restores order and views the newest song."""
        original = SongStore(storage)
        older, newer = make_song(title="Older"), make_song(title="Newer")
        original.insert_at_front(older)
        original.insert_at_front(newer)

        reloaded = SongStore(storage)
        reloaded.load_history()

        assert [s.id for s in reloaded.songs] == [newer.id, older.id]
        assert reloaded.current_id == newer.id

    def test_load_history_without_blob_is_empty(self, storage):
        store = SongStore(storage)
        store.load_history()
        assert len(store) == 0
        assert store.current is None

    def test_corrupt_blob_counts_as_empty(self, storage):
        """Unparseable history is ignored rather than crashing the session."""
        storage.slots[HISTORY_KEY] = json.dumps([{"title": 5}])
        store = SongStore(storage)
        store.load_history()
        assert len(store) == 0

    def test_unreadable_storage_counts_as_empty(self):
        store = SongStore(FailingStorage())
        store.load_history()
        assert len(store) == 0

    def test_persist_failure_keeps_memory_state(self, make_song):
        """A failing write is logged; the in-memory history stays authoritative."""
        store = SongStore(FailingStorage())
        song = make_song()
        store.insert_at_front(song)
        assert store.get(song.id) is song

    def test_json_file_storage(self, tmp_path, make_song):
        """History survives a round trip through the JSON file."""
        storage = JsonFileStorage(tmp_path / "history")
        store = SongStore(storage)
        song = make_song()
        store.insert_at_front(song)

        assert (tmp_path / "history" / f"{HISTORY_KEY}.json").exists()
        reloaded = SongStore(JsonFileStorage(tmp_path / "history"))
        reloaded.load_history()
        assert reloaded.get(song.id) == song

    def test_json_file_storage_reads_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SONGSMITH_HISTORY_DIR", str(tmp_path))
        assert JsonFileStorage().directory == tmp_path

    def test_failed_write_leaves_no_temp_file(self, tmp_path):
        """A save that cannot land removes its temporary file."""
        storage = JsonFileStorage(tmp_path)
        (tmp_path / f"{HISTORY_KEY}.json").mkdir()

        with pytest.raises(OSError):
            storage.save(HISTORY_KEY, [{"id": "s1"}])

        assert not (tmp_path / f"{HISTORY_KEY}.json.tmp").exists()
