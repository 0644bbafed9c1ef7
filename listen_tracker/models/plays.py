"""Domain models for a user's raw play history"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

@dataclass(frozen=True)
class ArtistInfo:
    """Artist credited on an album"""
    spotify_id: str
    name: str

@dataclass(frozen=True)
class AlbumInfo:
    """Album metadata passed through from the play history feed"""
    spotify_id: str
    name: str
    total_tracks: int
    image_url: Optional[str] = None
    release_date: Optional[str] = None
    artists: List[ArtistInfo] = field(default_factory=list)

@dataclass(frozen=True)
class PlayEvent:
    """
    One track play from the recently played feed.

    play_index is the position in the fetched sequence, assigned at ingestion.
    It is not derived from played_at.
    """
    track_id: str
    album_id: str
    album_total_tracks: int
    played_at: datetime
    play_index: int
    track_number: int
    disc_number: int = 1
    album: Optional[AlbumInfo] = None

    @property
    def album_position(self) -> tuple[int, int]:
        """Position of the track within its album"""
        return self.disc_number, self.track_number

@dataclass
class AlbumGroup:
    """All plays of one album within the day's fetch window, in first-seen order"""
    album_id: str
    album: AlbumInfo
    plays: List[PlayEvent] = field(default_factory=list)

    @property
    def unique_track_ids(self) -> set[str]:
        return {play.track_id for play in self.plays}
