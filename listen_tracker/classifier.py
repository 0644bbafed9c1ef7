"""Album listen classification for a day's play history"""
import logging
from typing import Iterable, List, Mapping

from listen_tracker.config import MIN_REQUIRED_TRACKS
from listen_tracker.models.listens import (
    AlbumListen, ClassifiedListen, FinishedAlbum, ListenMethod, ListenOrder, ListenTime, UnfinishedAlbum
)
from listen_tracker.models.plays import AlbumGroup
from listen_tracker.tracks import (
    are_tracks_in_order, are_tracks_played_continuously, first_play, get_track_listen_time
)

logger = logging.getLogger(__name__)

class ListenClassifier:
    """Decides whether an album was listened to in full, and how"""

    def __init__(self, min_required_tracks: int = MIN_REQUIRED_TRACKS,
                 listen_method: ListenMethod = ListenMethod.SPOTIFY):
        self.min_required_tracks = min_required_tracks
        self.listen_method = listen_method

    def is_listened_in_full(self, group: AlbumGroup) -> bool:
        """Every track of the album was played at least once"""
        total_tracks = group.album.total_tracks
        return (
            len(group.unique_track_ids) == total_tracks
            and total_tracks >= self.min_required_tracks
        )

    def listen_order(self, group: AlbumGroup, album_by_index: Mapping[int, str]) -> ListenOrder:
        """
        Classify how the album was played

        - interrupted: another album was played in between
        - ordered: tracks went front to back
        - shuffled: anything else
        """
        if not are_tracks_played_continuously(group.plays, album_by_index):
            return ListenOrder.INTERRUPTED
        if are_tracks_in_order(group.plays):
            return ListenOrder.ORDERED
        return ListenOrder.SHUFFLED

    def listen_time(self, group: AlbumGroup) -> ListenTime:
        return get_track_listen_time(first_play(group.plays).played_at)

    def classify(self, group: AlbumGroup, album_by_index: Mapping[int, str]) -> ClassifiedListen:
        """Classify a single album group against the full day's play sequence"""
        if not self.is_listened_in_full(group):
            return UnfinishedAlbum(album_id=group.album_id, album_name=group.album.name)

        return FinishedAlbum(
            album=group.album,
            listen_order=self.listen_order(group, album_by_index),
            listen_method=self.listen_method,
            listen_time=self.listen_time(group)
        )

    def classify_all(self, groups: Iterable[AlbumGroup], album_by_index: Mapping[int, str]) -> List[ClassifiedListen]:
        return [self.classify(group, album_by_index) for group in groups]

def assemble_listens(classified: Iterable[ClassifiedListen]) -> List[AlbumListen]:
    """Keep finished albums only, shaped for persistence"""
    listens = []
    for result in classified:
        if not result.listened_in_full:
            logger.debug(f"Album {result.album_name} ({result.album_id}) was not listened in full")
            continue
        listens.append(AlbumListen(
            album=result.album,
            listen_order=result.listen_order,
            listen_method=result.listen_method,
            listen_time=result.listen_time
        ))
    return listens
