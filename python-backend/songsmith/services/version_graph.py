"""Version numbering and parent/child links between songs."""

from __future__ import annotations

import logging
import re
from datetime import datetime

from songsmith.models.song import FeatureFlags, Song, new_song_id, utcnow
from songsmith.services.song_store import SongStore

log = logging.getLogger(__name__)

# A trailing "(V{n})" marker, or the older "(V{n} - note)" form.
_VERSION_SUFFIX = re.compile(r"\s*\(V(\d+)(?:\s*-[^()]*)?\)\s*$")


def _split_title(title: str) -> tuple[str, int | None]:
    """Return (bare title, current version number or None).

    Only numbered markers are stripped. Anything else in parentheses, such
    as "(Vocal Edit)" or "(Vfinal)", is part of the name.
    """
    bare = title.rstrip()
    version: int | None = None
    while True:
        match = _VERSION_SUFFIX.search(bare)
        if not match:
            break
        if version is None:
            version = int(match.group(1))
        bare = bare[: match.start()].rstrip()
    return bare, version


def next_version_label(base: Song | str) -> str:
    """Label for the next version: V2 when unversioned or malformed, else V{n+1}."""
    title = base.title if isinstance(base, Song) else base
    _, version = _split_title(title)
    if version is None:
        return "V2"
    return f"V{version + 1}"


def version_title(base: Song | str) -> str:
    title = base.title if isinstance(base, Song) else base
    bare, _ = _split_title(title)
    return f"{bare} ({next_version_label(title)})".lstrip()


def derive(
    base: Song,
    new_lyrics: str,
    new_rationale: str,
    flags: FeatureFlags,
    now: datetime | None = None,
) -> Song:
    """Build the next version of ``base`` as a brand-new song.

    Style, negative prompt and cover art carry over. Analysis, variations and
    render results described the old lyrics and are dropped. Flags are taken
    from the caller, not from the base.
    """
    song = base.model_copy(
        update={
            "id": new_song_id(),
            "parent_id": base.id,
            "created_at": now or utcnow(),
            "title": version_title(base),
            "lyrics": new_lyrics,
            "technical_explanation": new_rationale,
            "analysis": None,
            "variations": None,
            "render": None,
            "flags": flags,
        }
    )
    log.info("Derived %s (%r) from %s", song.id, song.title, base.id)
    return song


def find_parent(song: Song, store: SongStore) -> Song | None:
    """Look the parent up in the live store. Never cached."""
    if not song.parent_id:
        return None
    return store.get(song.parent_id)
