"""SQLAlchemy database models for users, albums and their daily listens"""
import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)

class User(Base):
    """A user with a connected Spotify account"""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    spotify_user_id = Column(String, unique=True, nullable=False, index=True)
    display_name = Column(String, nullable=True)
    spotify_refresh_token = Column(String, nullable=True)
    spotify_access_token = Column(String, nullable=True)
    spotify_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    # Set when Spotify rejects the refresh token; cleared when the user reconnects
    spotify_requires_reauth = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

class Artist(Base):
    __tablename__ = 'artists'

    id = Column(Integer, primary_key=True)
    spotify_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)

class Album(Base):
    __tablename__ = 'albums'

    id = Column(Integer, primary_key=True)
    spotify_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    release_date = Column(String, nullable=True)
    total_tracks = Column(Integer, nullable=True)

    artists = relationship(
        'AlbumArtist', back_populates='album', order_by='AlbumArtist.order', cascade='all, delete-orphan'
    )

class AlbumArtist(Base):
    """Artist credit on an album, in credit order"""
    __tablename__ = 'album_artists'

    album_id = Column(Integer, ForeignKey('albums.id', ondelete='CASCADE'), primary_key=True)
    artist_id = Column(Integer, ForeignKey('artists.id', ondelete='CASCADE'), primary_key=True)
    order = Column(Integer, nullable=False, default=0)

    album = relationship('Album', back_populates='artists')
    artist = relationship('Artist')

class DailyListen(Base):
    """All albums a user finished on one UTC date"""
    __tablename__ = 'daily_listens'
    __table_args__ = (UniqueConstraint('user_id', 'date', name='uq_daily_listen_user_date'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    albums = relationship('AlbumListen', back_populates='daily_listen', cascade='all, delete-orphan')

class AlbumListen(Base):
    __tablename__ = 'album_listens'
    __table_args__ = (UniqueConstraint('daily_listen_id', 'album_id', name='uq_album_listen_day_album'),)

    id = Column(Integer, primary_key=True)
    daily_listen_id = Column(Integer, ForeignKey('daily_listens.id', ondelete='CASCADE'), nullable=False)
    album_id = Column(Integer, ForeignKey('albums.id'), nullable=False)
    listen_order = Column(String, nullable=False)
    listen_method = Column(String, nullable=False)
    listen_time = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    daily_listen = relationship('DailyListen', back_populates='albums')
    album = relationship('Album')

class BacklogItem(Base):
    """Album a user intends to listen to at some point"""
    __tablename__ = 'backlog_items'
    __table_args__ = (UniqueConstraint('user_id', 'album_id', name='uq_backlog_user_album'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    album_id = Column(Integer, ForeignKey('albums.id'), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

class ScheduledListen(Base):
    """Album a user planned for a specific date"""
    __tablename__ = 'scheduled_listens'
    __table_args__ = (UniqueConstraint('user_id', 'date', name='uq_scheduled_listen_user_date'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    album_id = Column(Integer, ForeignKey('albums.id'), nullable=False)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
