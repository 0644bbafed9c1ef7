"""Turns a user's recently played tracks into daily album listens"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from listen_tracker.classifier import ListenClassifier, assemble_listens
from listen_tracker.models.listens import ClassifiedListen
from listen_tracker.models.plays import AlbumInfo, PlayEvent
from listen_tracker.models.result import UserProcessingResult
from listen_tracker.services.queues import BacklogService, ScheduledListenService
from listen_tracker.services.spotify import (
    MAX_RECENTLY_PLAYED_LIMIT,
    SpotifyAPI,
    SpotifyAPIError,
    parse_album,
    parse_spotify_datetime
)
from listen_tracker.services.storage import StorageService, UpsertCache
from listen_tracker.tracks import group_tracks_by_album, index_albums

logger = logging.getLogger(__name__)

def to_play_events(items: List[Dict[str, Any]]) -> List[PlayEvent]:
    """
    Convert Spotify play history items into play events.

    play_index is each item's position in the given list, so the list must
    already be in play order.
    """
    albums: Dict[str, AlbumInfo] = {}
    plays = []
    for index, item in enumerate(items):
        track = item['track']
        album_id = track['album']['id']
        album = albums.get(album_id)
        if album is None:
            album = albums[album_id] = parse_album(track['album'])

        plays.append(PlayEvent(
            track_id=track['id'],
            album_id=album_id,
            album_total_tracks=album.total_tracks,
            played_at=parse_spotify_datetime(item['played_at']),
            play_index=index,
            track_number=int(track.get('track_number') or 0),
            disc_number=int(track.get('disc_number') or 1),
            album=album
        ))
    return plays

class RecentlyPlayedService:
    """Processes one user's plays for a day"""

    def __init__(self, storage: StorageService, backlog: BacklogService,
                 scheduled: ScheduledListenService, classifier: Optional[ListenClassifier] = None,
                 recently_played_limit: int = MAX_RECENTLY_PLAYED_LIMIT):
        self.storage = storage
        self.backlog = backlog
        self.scheduled = scheduled
        self.classifier = classifier or ListenClassifier()
        self.recently_played_limit = recently_played_limit

    def get_todays_plays(self, api: SpotifyAPI, user_id: int, today: date) -> List[PlayEvent]:
        """Fetch today's plays; a failed fetch counts as no plays"""
        try:
            items = api.get_todays_plays(today, limit=self.recently_played_limit)
        except (requests.exceptions.RequestException, SpotifyAPIError) as e:
            logger.error(f"Failed to fetch recently played tracks for user {user_id}: {e}")
            return []
        return to_play_events(items)

    def reconcile(self, plays: List[PlayEvent]) -> List[ClassifiedListen]:
        """Classify every album in the day's plays, in first-played order"""
        if not plays:
            return []
        groups = group_tracks_by_album(plays)
        return self.classifier.classify_all(groups.values(), index_albums(plays))

    def process_todays_listens(self, user_id: int, api: SpotifyAPI, today: date) -> UserProcessingResult:
        logger.info(f"Processing today's listens for user {user_id}")
        result = UserProcessingResult(user_id=user_id)

        plays = self.get_todays_plays(api, user_id, today)
        result.plays_found = len(plays)

        classified = self.reconcile(plays)
        listens = assemble_listens(classified)
        result.albums_unfinished = [c.album_id for c in classified if not c.listened_in_full]
        result.albums_finished = [listen.album.spotify_id for listen in listens]

        if not listens:
            logger.debug(f"No finished albums found today for user {user_id}")
            return result

        logger.info(f"Found {len(listens)} finished albums for user {user_id}")
        result.saved = self.storage.save_listens(user_id, listens, date=today, cache=UpsertCache())

        for listen in listens:
            result.backlog_removed += self.backlog.remove_by_album_spotify_id(user_id, listen.album.spotify_id)
            result.scheduled_removed += self.scheduled.remove_by_album_spotify_id(user_id, listen.album.spotify_id)

        logger.info(f"Successfully processed today's listens for user {user_id}: {result.saved} saved")
        return result
