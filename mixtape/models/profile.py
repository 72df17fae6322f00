"""
Taste profile models built from a listener's provider signals.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List
from .audio_features import AudioFeatures
from .provider import Provider
from .track import Track

@dataclass(frozen=True)
class ArtistRef:
    """Reference to an artist in a listener's top list."""
    id: str
    name: str
    source: Provider
    genres: List[str] = field(default_factory=list)
    image_url: Optional[str] = None
    external_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "source": self.source.value,
            "genres": list(self.genres),
            "image_url": self.image_url,
            "external_url": self.external_url
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArtistRef":
        return cls(
            id=data["id"],
            name=data["name"],
            source=Provider(data["source"]),
            genres=data.get("genres", []),
            image_url=data.get("image_url"),
            external_url=data.get("external_url")
        )

    @classmethod
    def from_spotify_data(cls, artist: Dict[str, Any]) -> "ArtistRef":
        images = artist.get("images") or []
        return cls(
            id=artist["id"],
            name=artist["name"],
            source=Provider.SPOTIFY,
            genres=[genre.lower() for genre in artist.get("genres", [])],
            image_url=images[0]["url"] if images else None,
            external_url=artist.get("external_urls", {}).get("spotify")
        )

    @classmethod
    def from_soundcloud_data(cls, user: Dict[str, Any]) -> "ArtistRef":
        return cls(
            id=str(user["id"]),
            name=user.get("username", "Unknown Artist"),
            source=Provider.SOUNDCLOUD,
            image_url=user.get("avatar_url"),
            external_url=user.get("permalink_url")
        )

@dataclass(frozen=True)
class MusicProfile:
    """Normalized numeric and tag profile of a listener's taste."""
    user_id: str
    top_artists: List[ArtistRef] = field(default_factory=list)
    top_tracks: List[Track] = field(default_factory=list)
    top_genres: List[str] = field(default_factory=list)
    audio_feature_averages: AudioFeatures = field(default_factory=AudioFeatures)
    last_analyzed: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sources: List[Provider] = field(default_factory=list)

    @property
    def mean_track_length_seconds(self) -> Optional[float]:
        """Mean duration of the listener's top tracks, if any carry one."""
        durations = [track.duration_seconds for track in self.top_tracks if track.duration_ms > 0]
        if not durations:
            return None
        return sum(durations) / len(durations)

    @property
    def is_empty(self) -> bool:
        return not (self.top_artists or self.top_tracks)

    def summary(self, artist_limit: int = 10, genre_limit: int = 10) -> Dict[str, Any]:
        """Compact view handed to the language model."""
        return {
            "top_artists": [artist.name for artist in self.top_artists[:artist_limit]],
            "top_genres": self.top_genres[:genre_limit],
            "audio_feature_averages": self.audio_feature_averages.present()
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "top_artists": [artist.to_dict() for artist in self.top_artists],
            "top_tracks": [track.to_dict() for track in self.top_tracks],
            "top_genres": list(self.top_genres),
            "audio_feature_averages": self.audio_feature_averages.to_dict(),
            "last_analyzed": self.last_analyzed.isoformat(),
            "sources": [provider.value for provider in self.sources]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MusicProfile":
        return cls(
            user_id=data["user_id"],
            top_artists=[ArtistRef.from_dict(a) for a in data.get("top_artists", [])],
            top_tracks=[Track.from_dict(t) for t in data.get("top_tracks", [])],
            top_genres=data.get("top_genres", []),
            audio_feature_averages=AudioFeatures.from_dict(data.get("audio_feature_averages")),
            last_analyzed=datetime.fromisoformat(data["last_analyzed"]),
            sources=[Provider(p) for p in data.get("sources", [])]
        )
