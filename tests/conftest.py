"""
Shared fixtures for the test suite.

Builds play events and raw Spotify play-history items, and provides an
in-memory SQLite session so storage code runs without Postgres.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from listen_tracker.models.db import Base
from listen_tracker.models.plays import AlbumInfo, ArtistInfo, PlayEvent

TODAY = date(2024, 3, 14)

# ---------------------------------------------------------------------------
# Albums
# ---------------------------------------------------------------------------


def make_album(album_id: str, total_tracks: int = 4, artists: Optional[Sequence[Tuple[str, str]]] = None) -> AlbumInfo:
    artists = artists if artists is not None else [(f"{album_id}-artist", f"Artist of {album_id}")]
    return AlbumInfo(
        spotify_id=album_id,
        name=f"Album {album_id}",
        total_tracks=total_tracks,
        image_url=f"https://img.example/{album_id}.jpg",
        artists=[ArtistInfo(spotify_id=a_id, name=name) for a_id, name in artists],
    )


ALBUM_X = make_album("x")
ALBUM_Y = make_album("y")


# ---------------------------------------------------------------------------
# Play events
# ---------------------------------------------------------------------------


def build_plays(
    sequence: Sequence[Tuple[AlbumInfo, int]],
    start: datetime = datetime(2024, 3, 14, 9, 0, tzinfo=timezone.utc),
) -> list[PlayEvent]:
    """Plays in the given order, four minutes apart, indexed by position."""
    return [
        PlayEvent(
            track_id=f"{album.spotify_id}-t{track_number}",
            album_id=album.spotify_id,
            album_total_tracks=album.total_tracks,
            played_at=start + timedelta(minutes=4 * index),
            play_index=index,
            track_number=track_number,
            album=album,
        )
        for index, (album, track_number) in enumerate(sequence)
    ]


# ---------------------------------------------------------------------------
# Raw Spotify items
# ---------------------------------------------------------------------------


def make_item(
    album_id: str,
    track_number: int,
    played_at: str,
    total_tracks: int = 4,
    disc_number: int = 1,
) -> dict:
    """A play-history item shaped like the recently-played endpoint returns."""
    return {
        "played_at": played_at,
        "track": {
            "id": f"{album_id}-t{disc_number}-{track_number}",
            "name": f"Track {track_number}",
            "track_number": track_number,
            "disc_number": disc_number,
            "album": {
                "id": album_id,
                "name": f"Album {album_id}",
                "total_tracks": total_tracks,
                "release_date": "2020-01-01",
                "images": [
                    {"url": f"https://img.example/{album_id}-640.jpg", "width": 640, "height": 640},
                    {"url": f"https://img.example/{album_id}-300.jpg", "width": 300, "height": 300},
                ],
                "artists": [{"id": f"{album_id}-artist", "name": f"Artist of {album_id}"}],
            },
        },
    }


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    db_session = Session()
    try:
        yield db_session
    finally:
        db_session.close()
        engine.dispose()
