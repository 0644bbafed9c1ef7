"""Classification results for album listens"""
from dataclasses import dataclass
from enum import Enum
from typing import Literal, Union

from listen_tracker.models.plays import AlbumInfo

class ListenOrder(str, Enum):
    ORDERED = "ordered"
    SHUFFLED = "shuffled"
    INTERRUPTED = "interrupted"

class ListenMethod(str, Enum):
    SPOTIFY = "spotify"
    MANUAL = "manual"

class ListenTime(str, Enum):
    MORNING = "morning"
    NOON = "noon"
    EVENING = "evening"
    NIGHT = "night"

@dataclass(frozen=True)
class UnfinishedAlbum:
    """Album that was not listened to in full"""
    album_id: str
    album_name: str
    listened_in_full: Literal[False] = False

@dataclass(frozen=True)
class FinishedAlbum:
    """Album listened to in full, with how and when it was played"""
    album: AlbumInfo
    listen_order: ListenOrder
    listen_method: ListenMethod
    listen_time: ListenTime
    listened_in_full: Literal[True] = True

ClassifiedListen = Union[UnfinishedAlbum, FinishedAlbum]

@dataclass(frozen=True)
class AlbumListen:
    """A finished album shaped for persistence"""
    album: AlbumInfo
    listen_order: ListenOrder
    listen_method: ListenMethod
    listen_time: ListenTime
