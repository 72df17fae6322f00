"""
Pytest configuration and shared fixtures for the mixtape synthesizer tests.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from config.settings import GatewayConfig, SelectionPolicy
from mixtape.api.gateway import ProviderGateway
from mixtape.models import (
    ArtistRef,
    AudioFeatures,
    Connection,
    EnergyProfile,
    MixtapeIntent,
    MusicProfile,
    Provider,
    Track
)
from mixtape.storage import (
    ConnectionRepository,
    MessageRepository,
    PlaylistRepository,
    ProfileRepository,
    RecordStore
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

def build_track(
    track_id,
    name=None,
    artist="Test Artist",
    duration_ms=200000,
    source=Provider.SPOTIFY,
    energy=None,
    genres=None,
    features=None
):
    """Track with sensible defaults; ``energy`` is shorthand for a one-feature vector."""
    if features is None and energy is not None:
        features = AudioFeatures(energy=energy)
    return Track(
        id=track_id,
        name=name or f"Song {track_id}",
        artist=artist,
        duration_ms=duration_ms,
        source=source,
        uri=f"{source.value}:track:{track_id}",
        provider_ids={source.value: track_id},
        audio_features=features,
        genres=genres or []
    )

def build_intent(**overrides):
    values = dict(
        mood_tags=["chill"],
        target_duration_seconds=1800,
        target_track_count=9,
        energy_profile=EnergyProfile.STEADY,
        source_weights={Provider.SPOTIFY: 0.5, Provider.SOUNDCLOUD: 0.5},
        discovery_ratio=0.3
    )
    values.update(overrides)
    return MixtapeIntent(**values)

@pytest.fixture
def now():
    """Fixed clock used by the gateway fixture."""
    return NOW

@pytest.fixture
def make_track():
    """Factory for test tracks."""
    return build_track

@pytest.fixture
def make_intent():
    """Factory for test intents."""
    return build_intent

@pytest.fixture
def sample_audio_features():
    """Sample audio features for testing."""
    return AudioFeatures(
        energy=0.8,
        valence=0.6,
        danceability=0.7,
        acousticness=0.3,
        instrumentalness=0.2,
        tempo=120.0
    )

@pytest.fixture
def sample_profile(sample_audio_features):
    """Profile with one Spotify artist and two top tracks."""
    return MusicProfile(
        user_id="u1",
        top_artists=[ArtistRef(id="a1", name="Bonobo", source=Provider.SPOTIFY, genres=["downtempo"])],
        top_tracks=[
            build_track("fav1", artist="Bonobo", features=sample_audio_features),
            build_track("fav2", artist="Tycho", duration_ms=240000)
        ],
        top_genres=["downtempo"],
        audio_feature_averages=sample_audio_features,
        sources=[Provider.SPOTIFY]
    )

@pytest.fixture
def store():
    """In-memory record store (no Redis URL)."""
    return RecordStore()

@pytest.fixture
def connections(store):
    return ConnectionRepository(store)

@pytest.fixture
def profiles(store):
    return ProfileRepository(store)

@pytest.fixture
def playlists(store):
    return PlaylistRepository(store)

@pytest.fixture
def messages(store):
    return MessageRepository(store)

@pytest.fixture
def gateway_config():
    """Gateway policy with near-zero backoff so retries stay fast."""
    return GatewayConfig(backoff_base_seconds=0.001, backoff_factor=1.0, max_attempts=3)

@pytest.fixture
def selection_policy():
    return SelectionPolicy(shuffle_seed=7)

@pytest.fixture
def mock_spotify_client():
    """Mock Spotify provider client."""
    client = AsyncMock()
    client.provider = Provider.SPOTIFY
    client.search_tracks.return_value = []
    client.get_audio_features.return_value = {}
    client.get_top_artists.return_value = []
    client.get_top_tracks.return_value = []
    return client

@pytest.fixture
def mock_soundcloud_client():
    """Mock SoundCloud provider client."""
    client = AsyncMock()
    client.provider = Provider.SOUNDCLOUD
    client.search_tracks.return_value = []
    client.get_audio_features.return_value = {}
    client.get_top_artists.return_value = []
    client.get_top_tracks.return_value = []
    return client

@pytest.fixture
def gateway(mock_spotify_client, mock_soundcloud_client, connections, gateway_config):
    """Gateway over mock clients with a fixed clock."""
    return ProviderGateway(
        {Provider.SPOTIFY: mock_spotify_client, Provider.SOUNDCLOUD: mock_soundcloud_client},
        connections,
        gateway_config,
        clock=lambda: NOW
    )

@pytest.fixture
def fresh_connection():
    """Spotify connection valid for another hour."""
    return Connection(
        user_id="u1",
        provider=Provider.SPOTIFY,
        access_token="live-token",
        refresh_token="refresh-token",
        expires_at=NOW + timedelta(hours=1),
        provider_user_id="spotify-user"
    )

@pytest.fixture
def expired_connection():
    """Spotify connection that expired a minute ago."""
    return Connection(
        user_id="u1",
        provider=Provider.SPOTIFY,
        access_token="stale-token",
        refresh_token="refresh-token",
        expires_at=NOW - timedelta(minutes=1),
        provider_user_id="spotify-user"
    )

@pytest.fixture
def soundcloud_connection():
    """Non-expiring SoundCloud connection."""
    return Connection(
        user_id="u1",
        provider=Provider.SOUNDCLOUD,
        access_token="sc-token",
        provider_user_id="sc-user"
    )
