"""Backlog and scheduled-listen cleanup once an album has been listened to"""
import logging
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from listen_tracker.models.db import Album, BacklogItem, ScheduledListen

logger = logging.getLogger(__name__)

class _AlbumQueueService:
    """Removes a user's queue entries for an album, keyed by the album's Spotify ID"""
    model = None
    label = ''

    def __init__(self, session: Session):
        self.session = session

    def _find_album_id(self, album_spotify_id: str) -> Optional[int]:
        album = self.session.query(Album.id).filter_by(spotify_id=album_spotify_id).first()
        return album.id if album else None

    def remove_by_album_spotify_id(self, user_id: int, album_spotify_id: str) -> int:
        """
        Delete the user's entries for an album.

        Returns:
            int: Number of rows removed, 0 when the album is unknown
        """
        logger.debug(f"Deleting {self.label} by album Spotify ID {album_spotify_id} for user {user_id}")
        try:
            album_id = self._find_album_id(album_spotify_id)
            if album_id is None:
                logger.debug(f"Album {album_spotify_id} not found, nothing to delete")
                return 0

            count = (
                self.session.query(self.model)
                .filter(self.model.user_id == user_id, self.model.album_id == album_id)
                .delete(synchronize_session=False)
            )
            if count:
                logger.info(f"Removed {count} {self.label} for album {album_spotify_id} (user {user_id})")
            return count
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete {self.label} for album {album_spotify_id} (user {user_id}): {e}")
            self.session.rollback()
            raise

class BacklogService(_AlbumQueueService):
    model = BacklogItem
    label = 'backlog item'

class ScheduledListenService(_AlbumQueueService):
    model = ScheduledListen
    label = 'scheduled listen'
