"""Runs listen processing for every connected user"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from listen_tracker.classifier import ListenClassifier
from listen_tracker.config import Settings
from listen_tracker.db import Database, db
from listen_tracker.models.db import User
from listen_tracker.models.result import ProcessingResponse, UserProcessingResult
from listen_tracker.services.queues import BacklogService, ScheduledListenService
from listen_tracker.services.recently_played import RecentlyPlayedService
from listen_tracker.services.spotify import SpotifyAPI, SpotifyReauthRequired, refresh_access_token
from listen_tracker.services.storage import StorageService

logger = logging.getLogger(__name__)

# Refresh tokens this close to expiry rather than risk a 401 mid-run
TOKEN_EXPIRY_MARGIN = timedelta(minutes=1)

class ListenProcessor:
    """Processes today's listens for all users, one user at a time"""

    def __init__(self, settings: Settings, database: Database = db,
                 api_factory: Callable[..., SpotifyAPI] = SpotifyAPI,
                 token_refresher: Callable = refresh_access_token):
        """Initialize processor with settings"""
        self.settings = settings
        self.credentials = settings.spotify_credentials
        self.database = database
        self.api_factory = api_factory
        self.token_refresher = token_refresher

    def run(self, today: Optional[date] = None) -> ProcessingResponse:
        """Process every eligible user and summarise the outcome"""
        today = today or datetime.now(timezone.utc).date()
        response = ProcessingResponse(processed_date=today)

        with self.database.session() as session:
            user_ids = [user.id for user in StorageService(session).get_users_for_processing(self.settings.USER_ID)]

        if not user_ids:
            logger.info("No users with a connected Spotify account to process")
            return response

        logger.info(f"Processing listens for {len(user_ids)} users on {today.isoformat()}")
        for user_id in user_ids:
            response.add(self.process_user(user_id, today))

        logger.info(
            f"Finished processing: {response.users_processed} users, {response.users_failed} failed, "
            f"{response.albums_saved} albums saved"
        )
        return response

    def process_user(self, user_id: int, today: date) -> UserProcessingResult:
        """Process one user in its own transaction; failures are reported, not raised"""
        try:
            with self.database.session() as session:
                storage = StorageService(session)
                user = session.get(User, user_id)
                if user is None:
                    raise ValueError(f"User {user_id} not found")

                try:
                    access_token = self._get_access_token(storage, user)
                except SpotifyReauthRequired as e:
                    storage.mark_requires_reauth(user)
                    return UserProcessingResult(user_id=user_id, error=str(e))

                service = RecentlyPlayedService(
                    storage=storage,
                    backlog=BacklogService(session),
                    scheduled=ScheduledListenService(session),
                    classifier=ListenClassifier(min_required_tracks=self.settings.MIN_REQUIRED_TRACKS),
                    recently_played_limit=self.settings.RECENTLY_PLAYED_LIMIT
                )
                api = self.api_factory(
                    access_token,
                    base_url=self.settings.SPOTIFY_API_URL,
                    min_required_tracks=self.settings.MIN_REQUIRED_TRACKS
                )
                try:
                    return service.process_todays_listens(user_id, api, today)
                finally:
                    api.close()
        except Exception as e:
            logger.exception(f"Error processing listens for user {user_id}: {e}")
            return UserProcessingResult(user_id=user_id, error=str(e))

    def _get_access_token(self, storage: StorageService, user: User) -> str:
        """Reuse the stored access token while valid, otherwise refresh it"""
        expires_at = user.spotify_token_expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if user.spotify_access_token and expires_at and expires_at - TOKEN_EXPIRY_MARGIN > datetime.now(timezone.utc):
            return user.spotify_access_token

        logger.debug(f"Refreshing Spotify access token for user {user.id}")
        token = self.token_refresher(self.credentials, user.spotify_refresh_token)
        storage.update_access_token(user, token)
        return token.access_token
