"""Application configuration and environment settings"""
from typing import Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class SpotifyCredentials(BaseModel):
    """Spotify OAuth application credentials"""
    client_id: str = Field(..., description="Spotify application client ID")
    client_secret: str = Field(..., description="Spotify application client secret")
    accounts_url: str = Field(..., description="Spotify accounts service base URL")

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    # Database
    DB_HOST: str = Field("localhost", description="Database host")
    DB_PORT: str = Field("5432", description="Database port")
    DB_NAME: str = Field("listens", description="Database name")
    DB_USER: str = Field("listens", description="Database user")
    DB_PASSWORD: Optional[str] = Field(None, description="Database password")
    DB_SSL_MODE: str = Field("disable", description="Postgres sslmode")
    DATABASE_URL: Optional[str] = Field(None, description="Full connection string, overrides the DB_* settings")

    # Spotify
    SPOTIFY_CLIENT_ID: Optional[str] = Field(None, description="Spotify application client ID")
    SPOTIFY_CLIENT_SECRET: Optional[str] = Field(None, description="Spotify application client secret")
    SPOTIFY_API_URL: str = Field("https://api.spotify.com/v1", description="Spotify Web API base URL")
    SPOTIFY_ACCOUNTS_URL: str = Field("https://accounts.spotify.com", description="Spotify accounts service base URL")

    # Listen processing
    RECENTLY_PLAYED_LIMIT: int = Field(50, description="Plays fetched per user per run (Spotify max is 50)")
    MIN_REQUIRED_TRACKS: int = Field(4, description="Albums with fewer tracks are never logged")
    USER_ID: Optional[int] = Field(None, description="Only process this user when set")

    # Output
    OUTPUT_DIR: str = Field("/output", description="Directory for output files")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    @property
    def spotify_credentials(self) -> SpotifyCredentials:
        """Get Spotify OAuth credentials as a separate model"""
        if not self.SPOTIFY_CLIENT_ID or not self.SPOTIFY_CLIENT_SECRET:
            raise ValueError("SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET settings are required")
        return SpotifyCredentials(
            client_id=self.SPOTIFY_CLIENT_ID,
            client_secret=self.SPOTIFY_CLIENT_SECRET,
            accounts_url=self.SPOTIFY_ACCOUNTS_URL
        )

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore'
    )

settings = Settings()

# Constants
MIN_REQUIRED_TRACKS = 4
