"""Database configuration and credentials management"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus

from listen_tracker.config import Settings, settings

@dataclass
class DatabaseCredentials:
    """Database credentials container with validation"""
    host: str
    port: str
    name: str
    user: str
    password: str
    ssl_mode: str = 'disable'

    def to_connection_string(self) -> str:
        """Generate database connection string with proper escaping"""
        return (
            f"postgresql://{quote_plus(self.user)}:{quote_plus(self.password)}@{self.host}:{self.port}/"
            f"{self.name}?sslmode={self.ssl_mode}"
        )

    @classmethod
    def from_settings(cls, config: Settings) -> 'DatabaseCredentials':
        """Create credentials from the DB_* settings"""
        if not config.DB_PASSWORD:
            raise ValueError("DB_PASSWORD setting is required")
        return cls(
            host=config.DB_HOST,
            port=config.DB_PORT,
            name=config.DB_NAME,
            user=config.DB_USER,
            password=config.DB_PASSWORD,
            ssl_mode=config.DB_SSL_MODE
        )

class DatabaseManager:
    """Resolves the connection string for the listens database"""

    @staticmethod
    def get_connection_string(config: Optional[Settings] = None) -> str:
        """
        Build the database connection string

        Args:
            config: Settings to read from, defaults to the process settings

        Returns:
            DATABASE_URL when set, otherwise a Postgres URL built from DB_* settings

        Raises:
            ValueError: If neither DATABASE_URL nor DB_PASSWORD is set
        """
        config = config or settings
        if config.DATABASE_URL:
            return config.DATABASE_URL
        return DatabaseCredentials.from_settings(config).to_connection_string()
