"""Ordered song history with a single "currently viewed" pointer."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator

from pydantic import TypeAdapter, ValidationError

from songsmith.models.song import Song
from songsmith.services.history_storage import HISTORY_KEY, HistoryStorage

log = logging.getLogger(__name__)

_SONG_LIST = TypeAdapter(list[Song])

SongMutator = Callable[[Song], Song]


class SongStore:
    """In-memory history of songs, newest first, mirrored to durable storage.

    Every mutation builds a new tuple and installs it in one step. The event
    loop is single-threaded, so a reader never sees a half-applied change even
    while several network calls that will eventually mutate the store are in
    flight.
    """

    def __init__(self, storage: HistoryStorage | None = None, key: str = HISTORY_KEY):
        self._storage = storage
        self._key = key
        self._songs: tuple[Song, ...] = ()
        self._current_id: str | None = None

    # ── Reads ─────────────────────────────────────────

    @property
    def songs(self) -> tuple[Song, ...]:
        return self._songs

    @property
    def current_id(self) -> str | None:
        return self._current_id

    @property
    def current(self) -> Song | None:
        """The viewed song, looked up fresh so merged enrichment is visible."""
        return self.get(self._current_id) if self._current_id else None

    def get(self, song_id: str) -> Song | None:
        for song in self._songs:
            if song.id == song_id:
                return song
        return None

    def __contains__(self, song_id: object) -> bool:
        return any(song.id == song_id for song in self._songs)

    def __len__(self) -> int:
        return len(self._songs)

    def __iter__(self) -> Iterator[Song]:
        return iter(self._songs)

    # ── Mutations ─────────────────────────────────────

    def insert_at_front(self, song: Song) -> None:
        if song.id in self:
            raise ValueError(f"Song id {song.id} is already in history")
        self._songs = (song, *self._songs)
        log.info("Inserted song %s (%r)", song.id, song.title)
        self.persist_snapshot()

    def replace(self, song_id: str, mutator: SongMutator) -> Song | None:
        """Swap one song for ``mutator(song)``.

        Returns the new song, or None when no song has that id (for example
        because history was cleared while a network call was in flight).
        """
        original: Song | None = None
        updated: Song | None = None
        songs: list[Song] = []
        for song in self._songs:
            if song.id == song_id:
                original = song
                updated = mutator(song)
                if updated.id != song_id:
                    raise ValueError("A mutator must not change the song id")
                songs.append(updated)
            else:
                songs.append(song)

        if updated is None:
            log.debug("Dropped update for unknown song %s", song_id)
            return None
        if updated is original:
            return updated

        self._songs = tuple(songs)
        self.persist_snapshot()
        return updated

    def set_current(self, song_id: str | None) -> Song | None:
        if song_id is not None and song_id not in self:
            log.warning("Cannot view unknown song %s; clearing selection", song_id)
            song_id = None
        self._current_id = song_id
        return self.current

    def clear_all(self) -> None:
        count = len(self._songs)
        self._songs = ()
        self._current_id = None
        log.info("Cleared history (%d songs)", count)
        self.persist_snapshot()

    def restore_from_persisted(self, songs: Iterable[Song]) -> None:
        self._songs = tuple(songs)
        self._current_id = self._songs[0].id if self._songs else None
        log.info("Restored %d songs from storage", len(self._songs))
        self.persist_snapshot()

    # ── Persistence ───────────────────────────────────

    def load_history(self) -> None:
        """Read the persisted blob. Anything unreadable counts as no history."""
        songs: list[Song] = []
        if self._storage is not None:
            try:
                raw = self._storage.load(self._key)
                if raw is not None:
                    songs = _SONG_LIST.validate_python(raw)
            except (OSError, ValueError, ValidationError) as e:
                log.warning("Ignoring unreadable song history: %s", e)
                songs = []
        self.restore_from_persisted(songs)

    def persist_snapshot(self) -> None:
        """Write the whole collection. Failures are logged, never raised."""
        if self._storage is None:
            return
        try:
            payload = _SONG_LIST.dump_python(list(self._songs), mode="json")
            self._storage.save(self._key, payload)
        except Exception as e:
            log.error("Failed to persist song history (%d songs): %s", len(self._songs), e)
