"""Database storage service for users and their daily album listens"""
import logging
import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from listen_tracker.models.db import Album, AlbumArtist, AlbumListen as AlbumListenRow, Artist, DailyListen, User
from listen_tracker.models.listens import AlbumListen
from listen_tracker.models.plays import AlbumInfo, ArtistInfo
from listen_tracker.services.spotify import AccessToken

logger = logging.getLogger(__name__)

@dataclass
class UpsertCache:
    """Albums and artists already upserted during one processing run, keyed by Spotify ID"""
    albums: Dict[str, Album] = field(default_factory=dict)
    artists: Dict[str, Artist] = field(default_factory=dict)

class StorageService:
    """Handles all database operations for listen processing"""

    def __init__(self, session: Session):
        self.session = session

    def get_users_for_processing(self, user_id: Optional[int] = None) -> List[User]:
        """Users with a Spotify refresh token who do not need to reconnect"""
        try:
            query = (
                self.session.query(User)
                .filter(User.spotify_refresh_token.isnot(None))
                .filter(User.spotify_requires_reauth.is_(False))
            )
            if user_id is not None:
                query = query.filter(User.id == user_id)
            return query.order_by(User.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Database error fetching users for processing: {e}")
            self.session.rollback()
            raise

    def update_access_token(self, user: User, token: AccessToken) -> None:
        user.spotify_access_token = token.access_token
        user.spotify_token_expires_at = token.expires_at
        if token.refresh_token:
            user.spotify_refresh_token = token.refresh_token
        self.session.flush()

    def mark_requires_reauth(self, user: User) -> None:
        logger.warning(f"Marking user {user.id} as requiring Spotify reauthentication")
        user.spotify_requires_reauth = True
        self.session.flush()

    def save_listens(self, user_id: int, listens: Sequence[AlbumListen],
                     date: Optional[datetime.date] = None, cache: Optional[UpsertCache] = None) -> int:
        """
        Record finished albums under the user's daily listen for a UTC date.

        The daily listen is created on first use. Albums already recorded for
        that day are skipped, so reruns of the same day are harmless.

        Returns:
            int: Number of album listens newly inserted
        """
        listen_date = date or datetime.datetime.now(datetime.timezone.utc).date()
        cache = cache if cache is not None else UpsertCache()

        try:
            daily_listen = self.session.query(DailyListen).filter_by(user_id=user_id, date=listen_date).first()
            if daily_listen is None:
                logger.info(f"Creating daily listen for user {user_id} on {listen_date}")
                daily_listen = DailyListen(user_id=user_id, date=listen_date)
                self.session.add(daily_listen)
                self.session.flush()

            recorded_album_ids = {album_listen.album_id for album_listen in daily_listen.albums}
            inserted = 0

            for listen in listens:
                album = self.upsert_album(listen.album, cache)
                if album.id in recorded_album_ids:
                    logger.debug(f"Album {listen.album.spotify_id} already recorded for user {user_id} on {listen_date}")
                    continue

                daily_listen.albums.append(AlbumListenRow(
                    album_id=album.id,
                    listen_order=listen.listen_order.value,
                    listen_method=listen.listen_method.value,
                    listen_time=listen.listen_time.value
                ))
                recorded_album_ids.add(album.id)
                inserted += 1

            self.session.flush()
            logger.info(f"Stored {inserted} new album listens for user {user_id} on {listen_date}")
            return inserted
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error storing listens for user {user_id}: {e}")
            raise

    def upsert_album(self, info: AlbumInfo, cache: UpsertCache) -> Album:
        """Insert or refresh an album and its artist credits"""
        if info.spotify_id in cache.albums:
            return cache.albums[info.spotify_id]

        album = self.session.query(Album).filter_by(spotify_id=info.spotify_id).first()
        if album is None:
            album = Album(spotify_id=info.spotify_id, name=info.name)
            self.session.add(album)
            credited = set()
            for artist_info in info.artists:
                if artist_info.spotify_id in credited:
                    continue
                album.artists.append(AlbumArtist(artist=self.upsert_artist(artist_info, cache), order=len(credited)))
                credited.add(artist_info.spotify_id)

        album.name = info.name
        album.total_tracks = info.total_tracks
        if info.image_url:
            album.image_url = info.image_url
        if info.release_date:
            album.release_date = info.release_date

        self.session.flush()
        cache.albums[info.spotify_id] = album
        return album

    def upsert_artist(self, info: ArtistInfo, cache: UpsertCache) -> Artist:
        if info.spotify_id in cache.artists:
            return cache.artists[info.spotify_id]

        artist = self.session.query(Artist).filter_by(spotify_id=info.spotify_id).first()
        if artist is None:
            artist = Artist(spotify_id=info.spotify_id, name=info.name)
            self.session.add(artist)
        elif info.name:
            artist.name = info.name

        self.session.flush()
        cache.artists[info.spotify_id] = artist
        return artist
