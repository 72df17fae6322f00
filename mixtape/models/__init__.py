"""Data models for the mixtape synthesis engine."""

from .provider import Provider
from .audio_features import AudioFeatures
from .track import Track
from .connection import Connection, ConnectionStatus
from .profile import ArtistRef, MusicProfile
from .intent import EnergyProfile, MixtapeIntent, IntentExtraction, PlaylistDescription
from .playlist import Playlist
from .conversation import Message, MessageRole

__all__ = [
    'Provider',
    'AudioFeatures',
    'Track',
    'Connection',
    'ConnectionStatus',
    'ArtistRef',
    'MusicProfile',
    'EnergyProfile',
    'MixtapeIntent',
    'IntentExtraction',
    'PlaylistDescription',
    'Playlist',
    'Message',
    'MessageRole'
]
