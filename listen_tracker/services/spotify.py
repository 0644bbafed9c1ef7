"""Spotify API integration service"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Any, Dict, List, Optional
import time

import requests

from listen_tracker.config import MIN_REQUIRED_TRACKS, SpotifyCredentials
from listen_tracker.models.plays import AlbumInfo, ArtistInfo

logger = logging.getLogger(__name__)

# --- Constants for Fetching Control ---
# Spotify caps recently played at 50 items per request
MAX_RECENTLY_PLAYED_LIMIT = 50
# Base delay in seconds for retries on rate limit
RATE_LIMIT_RETRY_BASE_DELAY = 2
# Upper bound for a server-provided Retry-After
MAX_RETRY_AFTER_SECONDS = 60
REQUEST_TIMEOUT_SECONDS = 15
# Album artwork width we prefer to store
DESIRED_IMAGE_SIZE = 300
# ------------------------------------

class SpotifyAPIError(Exception):
    """Spotify returned something we cannot use"""

class SpotifyReauthRequired(SpotifyAPIError):
    """The user's refresh token was revoked; they must reconnect Spotify"""

@dataclass
class AccessToken:
    access_token: str
    expires_at: datetime
    # Spotify only sometimes rotates the refresh token
    refresh_token: Optional[str] = None

def get_album_artwork(images: Optional[List[Dict]]) -> Optional[str]:
    """Pick the 300px album image, falling back to the first one."""
    if not images or not isinstance(images, list):
        return None
    for image in images:
        if isinstance(image, dict) and image.get('width') == DESIRED_IMAGE_SIZE:
            return image.get('url')
    if isinstance(images[0], dict):
        return images[0].get('url')
    return None

def parse_spotify_datetime(value: Any) -> Optional[datetime]:
    """Parse Spotify datetime string to timezone-aware datetime object"""
    if not value:
        return None
    try:
        # Handle both 'Z' and '+00:00' formats, and naive timestamps
        if isinstance(value, datetime): dt = value
        elif isinstance(value, str): dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        else: logger.warning(f"Unexpected type for datetime value: {type(value)}"); return None
        if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None: dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, TypeError) as e:
        logger.warning(f"Could not parse datetime value: {value}. Error: {e}"); return None

def parse_album(album_data: Dict[str, Any]) -> AlbumInfo:
    """Build album metadata from a Spotify simplified album object"""
    artists = [
        ArtistInfo(spotify_id=artist['id'], name=artist.get('name') or '')
        for artist in album_data.get('artists') or []
        if isinstance(artist, dict) and artist.get('id')
    ]
    return AlbumInfo(
        spotify_id=album_data['id'],
        name=album_data.get('name') or '',
        total_tracks=int(album_data.get('total_tracks') or 0),
        image_url=get_album_artwork(album_data.get('images')),
        release_date=album_data.get('release_date'),
        artists=artists
    )

def start_of_day(day: date) -> datetime:
    return datetime.combine(day, dt_time.min, tzinfo=timezone.utc)

def refresh_access_token(credentials: SpotifyCredentials, refresh_token: str,
                         session: Optional[requests.Session] = None) -> AccessToken:
    """
    Exchange a refresh token for a fresh access token.

    Raises:
        SpotifyReauthRequired: If Spotify answers with invalid_grant
        requests.exceptions.RequestException: On any other HTTP failure
    """
    if not refresh_token:
        raise ValueError("Refresh token cannot be empty")

    url = f"{credentials.accounts_url}/api/token"
    logger.debug(f"Refreshing Spotify access token via {url}")
    request = dict(
        data={'grant_type': 'refresh_token', 'refresh_token': refresh_token},
        auth=(credentials.client_id, credentials.client_secret),
        timeout=REQUEST_TIMEOUT_SECONDS
    )
    if session is not None:
        response = session.post(url, **request)
    else:
        with requests.Session() as http:
            response = http.post(url, **request)

    if response.status_code == 400:
        try:
            error = response.json().get('error', '')
        except ValueError:
            error = response.text
        if 'invalid_grant' in str(error).lower():
            logger.warning("Spotify refresh token rejected with invalid_grant")
            raise SpotifyReauthRequired("Spotify refresh token is no longer valid")
    response.raise_for_status()

    payload = response.json()
    if not isinstance(payload, dict) or not payload.get('access_token'):
        raise SpotifyAPIError("No access token returned from Spotify")

    expires_in = int(payload.get('expires_in', 3600))
    return AccessToken(
        access_token=payload['access_token'],
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        refresh_token=payload.get('refresh_token')
    )


class SpotifyAPI:
    """Handles Spotify Web API calls for one user"""

    def __init__(self, token: str, base_url: str = "https://api.spotify.com/v1",
                 min_required_tracks: int = MIN_REQUIRED_TRACKS):
        """
        Initialize with a Spotify access token
        """
        if not token:
            raise ValueError("Spotify token cannot be empty")
        self.base_url = base_url
        self.min_required_tracks = min_required_tracks
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Accept': 'application/json'
        })

    def close(self) -> None:
        self.session.close()

    def get_recently_played(self, limit: int = MAX_RECENTLY_PLAYED_LIMIT, after: Optional[int] = None) -> List[Dict]:
        """
        Get recently played tracks, newest first

        Args:
            limit: Number of tracks to fetch (max 50 per Spotify API docs)
            after: Unix timestamp in milliseconds; only plays after it are returned
        """
        params: Dict[str, Any] = {'limit': min(limit, MAX_RECENTLY_PLAYED_LIMIT)}
        if after is not None:
            params['after'] = after

        response_data = self._make_request('me/player/recently-played', params=params)
        if isinstance(response_data, dict) and isinstance(response_data.get('items'), list):
            return response_data['items']
        raise SpotifyAPIError(f"Unexpected response format for recently played: {response_data}")

    def get_todays_plays(self, today: Optional[date] = None, limit: int = MAX_RECENTLY_PLAYED_LIMIT) -> List[Dict]:
        """
        Get today's plays of albums long enough to count, oldest first.

        "Today" is the UTC calendar day. Malformed items are skipped.
        """
        today = today or datetime.now(timezone.utc).date()
        after_ms = int(start_of_day(today).timestamp() * 1000)
        logger.debug(f"Fetching plays after {after_ms} for {today.isoformat()}")

        items = self.get_recently_played(limit=limit, after=after_ms)

        todays_plays = []
        for item in items:
            track = item.get('track') if isinstance(item, dict) else None
            played_at = parse_spotify_datetime(item.get('played_at')) if track else None
            if not (isinstance(track, dict) and track.get('id') and isinstance(track.get('album'), dict)
                    and track['album'].get('id') and played_at):
                logger.warning(f"Skipping invalid recently played entry: {item}"); continue

            if played_at.date() != today:
                continue
            if int(track['album'].get('total_tracks') or 0) < self.min_required_tracks:
                continue
            todays_plays.append(item)

        todays_plays.sort(key=lambda entry: parse_spotify_datetime(entry['played_at']))
        logger.debug(f"Fetched {len(items)} plays, kept {len(todays_plays)} from today")
        return todays_plays

    def _make_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None, retries: int = 3) -> Dict:
        """Make authenticated request to Spotify API with retries"""
        url = f'{self.base_url}/{endpoint}'
        attempt = 0
        last_exception: Optional[Exception] = None

        while attempt < retries:
            attempt += 1
            try:
                logger.debug(f"Attempt {attempt}/{retries}: Making request to {url}")
                response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
                response.raise_for_status()
                try:
                    json_response = response.json()
                except ValueError:
                    logger.error(f"Failed to decode JSON response from {url}. Status: {response.status_code}. Response text: {response.text[:200]}")
                    raise SpotifyAPIError(f"Invalid JSON from {url}")
                return json_response if isinstance(json_response, dict) else {}
            except requests.exceptions.HTTPError as e:
                last_exception = e; response = e.response
                logger.warning(f"HTTP Error on attempt {attempt} for {url}: {e}")
                if response.status_code == 401: logger.error(f"Spotify token is invalid or expired (401) for {url}. Cannot proceed."); raise
                elif response.status_code == 403: logger.error(f"Forbidden access (403) to Spotify endpoint {url}. Check scopes/permissions."); raise
                elif response.status_code == 429:
                    retry_after = int(response.headers.get('Retry-After', RATE_LIMIT_RETRY_BASE_DELAY * (2 ** (attempt - 1))))
                    retry_after = max(1, min(retry_after, MAX_RETRY_AFTER_SECONDS))
                    if attempt >= retries: break
                    logger.warning(f"Rate limit hit (429) for {url}. Retrying after {retry_after} seconds...")
                    time.sleep(retry_after); continue
                elif response.status_code >= 500: logger.warning(f"Spotify server error ({response.status_code}) for {url}. Retrying...")
                else: logger.error(f"Client error ({response.status_code}) for {url}. Aborting request."); raise
            except requests.exceptions.RequestException as e:
                last_exception = e; logger.warning(f"Request Error on attempt {attempt} for {url}: {e}. Retrying...")
            if attempt < retries:
                sleep_time = RATE_LIMIT_RETRY_BASE_DELAY * (1.5 ** (attempt - 1)) + (0.5 * attempt)
                logger.info(f"Waiting {sleep_time:.2f}s before next retry for {url}...")
                time.sleep(sleep_time)

        logger.error(f"Request failed after {retries} attempts for {url}.")
        raise last_exception or requests.exceptions.RetryError(f"Request failed after {retries} attempts for {url}")
