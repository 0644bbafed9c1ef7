"""Tests for listen_tracker/processor.py.

Runs the processor against an in-memory SQLite database with a fake
Spotify client and token refresher.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import TODAY, make_item
from listen_tracker.config import Settings
from listen_tracker.db import Database
from listen_tracker.models.db import AlbumListen as AlbumListenRow, User
from listen_tracker.processor import ListenProcessor
from listen_tracker.services.spotify import AccessToken, SpotifyReauthRequired

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

FULL_ALBUM = [make_item("x", n, f"2024-03-14T09:{4 * n:02d}:00Z") for n in (1, 2, 3, 4)]


class FakeAPI:
    """Stands in for SpotifyAPI; plays are looked up by access token."""

    plays_by_token: dict = {}
    instances: list = []

    def __init__(self, token, base_url=None, min_required_tracks=4):
        self.token = token
        self.base_url = base_url
        self.min_required_tracks = min_required_tracks
        self.limits = []
        self.closed = False
        self.instances.append(self)

    def close(self):
        self.closed = True

    def get_todays_plays(self, today, limit=50):
        self.limits.append(limit)
        plays = self.plays_by_token.get(self.token, [])
        if isinstance(plays, Exception):
            raise plays
        return plays


class FakeRefresher:
    def __init__(self, revoked=()):
        self.revoked = set(revoked)
        self.calls = []

    def __call__(self, credentials, refresh_token):
        self.calls.append(refresh_token)
        if refresh_token in self.revoked:
            raise SpotifyReauthRequired("Spotify refresh token is no longer valid")
        return AccessToken(
            access_token=f"access-{refresh_token}",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(SPOTIFY_CLIENT_ID="client-id", SPOTIFY_CLIENT_SECRET="client-secret")


@pytest.fixture
def database():
    database = Database()
    database.init("sqlite://")
    yield database
    database.dispose()


def _add_users(database, *refresh_tokens, **fields):
    with database.session() as session:
        users = [
            User(spotify_user_id=f"user-{token}", spotify_refresh_token=token, **fields)
            for token in refresh_tokens
        ]
        session.add_all(users)
        session.flush()
        return [user.id for user in users]


def _processor(settings, database, refresher, plays_by_token) -> ListenProcessor:
    FakeAPI.plays_by_token = plays_by_token
    FakeAPI.instances = []
    return ListenProcessor(settings, database=database, api_factory=FakeAPI, token_refresher=refresher)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestListenProcessor:
    def test_missing_spotify_credentials(self, database) -> None:
        with pytest.raises(ValueError):
            ListenProcessor(Settings(SPOTIFY_CLIENT_ID=None, SPOTIFY_CLIENT_SECRET=None), database=database)

    def test_no_users(self, settings, database) -> None:
        response = _processor(settings, database, FakeRefresher(), {}).run(TODAY)
        assert response.users_processed == 0
        assert response.processed_date == TODAY

    def test_processes_every_user(self, settings, database) -> None:
        _add_users(database, "a", "b")
        refresher = FakeRefresher()

        response = _processor(settings, database, refresher, {"access-a": FULL_ALBUM}).run(TODAY)

        assert response.users_processed == 2
        assert response.users_failed == 0
        assert response.albums_saved == 1
        assert refresher.calls == ["a", "b"]
        with database.session() as session:
            assert session.query(AlbumListenRow).count() == 1
            assert {u.spotify_access_token for u in session.query(User)} == {"access-a", "access-b"}

    def test_valid_stored_token_is_reused(self, settings, database) -> None:
        _add_users(
            database,
            "a",
            spotify_access_token="stored",
            spotify_token_expires_at=datetime.now(timezone.utc) + timedelta(minutes=30),
        )
        refresher = FakeRefresher()

        response = _processor(settings, database, refresher, {"stored": FULL_ALBUM}).run(TODAY)

        assert refresher.calls == []
        assert response.albums_saved == 1

    def test_expired_token_is_refreshed(self, settings, database) -> None:
        _add_users(
            database,
            "a",
            spotify_access_token="stale",
            spotify_token_expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        refresher = FakeRefresher()

        _processor(settings, database, refresher, {}).run(TODAY)

        assert refresher.calls == ["a"]

    def test_revoked_token_marks_user_for_reauth(self, settings, database) -> None:
        [user_id] = _add_users(database, "revoked")

        response = _processor(settings, database, FakeRefresher(revoked={"revoked"}), {}).run(TODAY)

        assert response.users_failed == 1
        assert "no longer valid" in response.results[0].error
        with database.session() as session:
            assert session.get(User, user_id).spotify_requires_reauth is True

    def test_one_failing_user_does_not_stop_the_rest(self, settings, database) -> None:
        _add_users(database, "broken", "ok")
        plays = {"access-broken": RuntimeError("boom"), "access-ok": FULL_ALBUM}

        response = _processor(settings, database, FakeRefresher(), plays).run(TODAY)

        assert response.users_processed == 2
        assert response.users_failed == 1
        assert response.results[0].error == "boom"
        assert response.results[1].saved == 1

    def test_single_user_setting(self, database) -> None:
        ids = _add_users(database, "a", "b")
        settings = Settings(SPOTIFY_CLIENT_ID="id", SPOTIFY_CLIENT_SECRET="secret", USER_ID=ids[1])

        response = _processor(settings, database, FakeRefresher(), {}).run(TODAY)

        assert [r.user_id for r in response.results] == [ids[1]]

    def test_track_threshold_setting_reaches_fetch_and_classifier(self, database) -> None:
        _add_users(database, "a")
        ep = [make_item("ep", n, f"2024-03-14T09:{4 * n:02d}:00Z", total_tracks=3) for n in (1, 2, 3)]
        settings = Settings(SPOTIFY_CLIENT_ID="id", SPOTIFY_CLIENT_SECRET="secret", MIN_REQUIRED_TRACKS=3)

        response = _processor(settings, database, FakeRefresher(), {"access-a": ep}).run(TODAY)

        [result] = response.results
        assert FakeAPI.instances[0].min_required_tracks == 3
        assert result.albums_finished == ["ep"]
        assert result.saved == 1

    def test_fetch_limit_setting_is_used(self, database) -> None:
        _add_users(database, "a")
        settings = Settings(SPOTIFY_CLIENT_ID="id", SPOTIFY_CLIENT_SECRET="secret", RECENTLY_PLAYED_LIMIT=20)

        _processor(settings, database, FakeRefresher(), {}).run(TODAY)

        assert FakeAPI.instances[0].limits == [20]

    def test_api_client_is_closed_even_on_failure(self, settings, database) -> None:
        _add_users(database, "broken", "ok")
        plays = {"access-broken": RuntimeError("boom"), "access-ok": FULL_ALBUM}

        _processor(settings, database, FakeRefresher(), plays).run(TODAY)

        assert [api.closed for api in FakeAPI.instances] == [True, True]
