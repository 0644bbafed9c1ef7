"""Grouping and ordering helpers for a day's track plays"""
from datetime import datetime, timezone
from typing import Dict, Iterable, Mapping, Sequence

from listen_tracker.models.listens import ListenTime
from listen_tracker.models.plays import AlbumGroup, AlbumInfo, PlayEvent

# Hour ranges are [start, end); night wraps past midnight
TIME_RANGES = {
    ListenTime.MORNING: range(5, 12),
    ListenTime.NOON: range(12, 18),
    ListenTime.EVENING: range(18, 22),
}

def group_tracks_by_album(plays: Iterable[PlayEvent]) -> Dict[str, AlbumGroup]:
    """
    Partition plays into per-album groups.

    Albums keep the order in which they were first seen, and plays keep their
    input order within each group.
    """
    album_map: Dict[str, AlbumGroup] = {}

    for play in plays:
        group = album_map.get(play.album_id)
        if group is None:
            album = play.album or AlbumInfo(
                spotify_id=play.album_id, name=play.album_id, total_tracks=play.album_total_tracks
            )
            group = album_map[play.album_id] = AlbumGroup(album_id=play.album_id, album=album)
        group.plays.append(play)

    return album_map

def index_albums(plays: Iterable[PlayEvent]) -> Dict[int, str]:
    """Map each play_index in the fetched sequence to its album ID"""
    return {play.play_index: play.album_id for play in plays}

def are_tracks_played_continuously(plays: Sequence[PlayEvent], album_by_index: Mapping[int, str]) -> bool:
    """
    Check that no other album was played between the first and last play of this one.

    Any foreign play strictly between the lowest and highest play_index counts
    as an interruption, however short.
    """
    if not plays:
        return True

    album_id = plays[0].album_id
    indices = [play.play_index for play in plays]
    first, last = min(indices), max(indices)

    for index in range(first + 1, last):
        other = album_by_index.get(index)
        if other is not None and other != album_id:
            return False
    return True

def are_tracks_in_order(plays: Sequence[PlayEvent]) -> bool:
    """
    Check that tracks were played front to back.

    Plays are taken in play_index order and compared by (disc, track) position.
    Replaying the same track does not break the order.
    """
    previous = None
    for play in sorted(plays, key=lambda p: p.play_index):
        position = play.album_position
        if previous is not None and position < previous:
            return False
        previous = position
    return True

def first_play(plays: Sequence[PlayEvent]) -> PlayEvent:
    """Earliest play of a group by play_index"""
    if not plays:
        raise AssertionError("No plays found for album that was listened in full")
    return min(plays, key=lambda p: p.play_index)

def get_track_listen_time(played_at: datetime) -> ListenTime:
    """Bucket a play timestamp into a time of day using its UTC hour"""
    if played_at.tzinfo is None:
        played_at = played_at.replace(tzinfo=timezone.utc)
    hour = played_at.astimezone(timezone.utc).hour

    for listen_time, hours in TIME_RANGES.items():
        if hour in hours:
            return listen_time
    return ListenTime.NIGHT
