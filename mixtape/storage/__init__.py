"""Record storage for connections, profiles, playlists and conversations."""

from .record_store import RecordStore
from .repositories import (
    ConnectionRepository,
    MessageRepository,
    PlaylistRepository,
    ProfileRepository
)

__all__ = [
    'RecordStore',
    'ConnectionRepository',
    'MessageRepository',
    'PlaylistRepository',
    'ProfileRepository'
]
