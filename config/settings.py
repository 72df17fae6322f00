"""
Application settings and configuration management.
Handles environment variables, provider API configuration, and synthesis policy defaults.
"""

import os
from typing import Optional
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class APIConfig:
    """Configuration for external API services."""
    base_url: str
    timeout: float = 5.0
    max_retries: int = 3
    rate_limit_per_minute: int = 100

@dataclass
class CacheConfig:
    """Configuration for the record store and response caching."""
    redis_url: Optional[str] = None
    search_ttl: int = 3600   # 1 hour
    default_ttl: int = 3600

@dataclass
class GatewayConfig:
    """Token custody and retry policy for provider calls."""
    refresh_skew_seconds: int = 60
    backoff_base_seconds: float = 0.5
    backoff_factor: float = 2.0
    max_attempts: int = 3
    retry_statuses: tuple = (429, 502, 503, 504)
    oauth_state_ttl_seconds: int = 600

@dataclass
class IntentDefaults:
    """Defaults and clamps applied to language-model intent extraction."""
    target_duration_seconds: int = 1800
    seconds_per_track: int = 210
    energy_profile: str = "steady"
    discovery_ratio: float = 0.3
    min_duration_seconds: int = 60
    max_duration_seconds: int = 14400
    min_track_count: int = 1
    max_track_count: int = 200
    model_timeout_seconds: float = 15.0
    history_turns: int = 6

@dataclass
class DedupPolicy:
    """Thresholds for treating two candidates as the same recording."""
    title_similarity: float = 0.9
    duration_delta_ms: int = 2000

@dataclass
class ScoringWeights:
    """Weights of the candidate score terms."""
    feature_match: float = 0.5
    novelty: float = 0.2
    mood_overlap: float = 0.3
    tempo_scale: float = 250.0  # BPM mapped onto the 0-1 distance scale

@dataclass
class SelectionPolicy:
    """Selection and fan-out limits for playlist synthesis."""
    duration_tolerance: float = 0.10
    min_source_share: float = 0.20
    quota_min_tracks: int = 5
    search_limit: int = 20
    seed_sample_size: int = 3
    max_queries_per_provider: int = 12
    max_consecutive_same_artist: int = 2
    shuffle_seed: Optional[int] = None

class Settings:
    """Main application settings."""

    def __init__(self):
        # Spotify API Configuration
        self.spotify = APIConfig(
            base_url="https://api.spotify.com/v1",
            timeout=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "5")),
            rate_limit_per_minute=100
        )
        self.SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID")
        self.SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET")
        self.SPOTIFY_REDIRECT_URI = os.getenv("SPOTIFY_REDIRECT_URI", "http://localhost:8000/api/auth/spotify/callback")

        # SoundCloud API Configuration
        self.soundcloud = APIConfig(
            base_url="https://api.soundcloud.com",
            timeout=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "5")),
            rate_limit_per_minute=50
        )
        self.SOUNDCLOUD_CLIENT_ID = os.getenv("SOUNDCLOUD_CLIENT_ID")
        self.SOUNDCLOUD_CLIENT_SECRET = os.getenv("SOUNDCLOUD_CLIENT_SECRET")
        self.SOUNDCLOUD_REDIRECT_URI = os.getenv("SOUNDCLOUD_REDIRECT_URI", "http://localhost:8000/api/auth/soundcloud/callback")

        # Language model Configuration
        self.openai = APIConfig(
            base_url="https://api.openai.com/v1",
            timeout=float(os.getenv("MODEL_TIMEOUT_SECONDS", "15")),
            rate_limit_per_minute=60
        )
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
        self.OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

        # Record store / cache Configuration
        self.cache = CacheConfig(
            redis_url=os.getenv("REDIS_URL")
        )
        self.REDIS_URL = os.getenv("REDIS_URL")

        # Synthesis policy
        self.gateway = GatewayConfig()
        self.intent = IntentDefaults(
            model_timeout_seconds=self.openai.timeout
        )
        self.dedup = DedupPolicy(
            title_similarity=float(os.getenv("DEDUP_TITLE_SIMILARITY", "0.9")),
            duration_delta_ms=int(os.getenv("DEDUP_DURATION_DELTA_MS", "2000"))
        )
        self.scoring = ScoringWeights()
        self.selection = SelectionPolicy()

        # Profile aggregation
        self.profile = {
            "top_limit": 50,
            "max_genres": 20
        }

        # Logging Configuration
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
