"""
Track data model representing a unified music track from either provider.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Any, Optional, List
from .audio_features import AudioFeatures
from .provider import Provider

@dataclass(frozen=True)
class Track:
    """Represents a music track with metadata and optional audio features."""
    id: str                                  # Provider-native identifier of the canonical source
    name: str                                # Track name
    artist: str                              # Primary artist name
    duration_ms: int                         # Track duration in milliseconds
    source: Provider                         # Provider the canonical instance came from
    uri: str                                 # Provider URI of the canonical instance
    album: Optional[str] = None              # Album name
    preview_url: Optional[str] = None        # Preview audio URL
    image_url: Optional[str] = None          # Artwork URL
    external_urls: Dict[str, str] = field(default_factory=dict)  # Links keyed by provider
    provider_ids: Dict[str, str] = field(default_factory=dict)   # Native ids keyed by provider
    audio_features: Optional[AudioFeatures] = None  # Audio characteristics
    genres: List[str] = field(default_factory=list)  # Track or artist genres

    @property
    def duration_seconds(self) -> float:
        """Get track duration in seconds."""
        return self.duration_ms / 1000.0

    @property
    def duration_formatted(self) -> str:
        """Get formatted duration string (MM:SS)."""
        total_seconds = int(self.duration_seconds)
        minutes = total_seconds // 60
        seconds = total_seconds % 60
        return f"{minutes}:{seconds:02d}"

    @property
    def display_name(self) -> str:
        """Get display name for the track."""
        return f"{self.name} - {self.artist}"

    @property
    def has_audio_features(self) -> bool:
        return self.audio_features is not None and not self.audio_features.is_empty

    @property
    def energy(self) -> Optional[float]:
        return self.audio_features.energy if self.audio_features else None

    def merged_with(self, other: "Track") -> "Track":
        """Return a copy that also carries the other instance's provider links."""
        external_urls = dict(other.external_urls)
        external_urls.update(self.external_urls)
        provider_ids = dict(other.provider_ids)
        provider_ids.update(self.provider_ids)
        genres = list(dict.fromkeys(list(self.genres) + list(other.genres)))
        return replace(
            self,
            external_urls=external_urls,
            provider_ids=provider_ids,
            genres=genres,
            preview_url=self.preview_url or other.preview_url,
            image_url=self.image_url or other.image_url,
        )

    def with_audio_features(self, audio_features: Optional[AudioFeatures]) -> "Track":
        return replace(self, audio_features=audio_features)

    def to_dict(self) -> Dict[str, Any]:
        """Convert track to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "artist": self.artist,
            "album": self.album,
            "duration_ms": self.duration_ms,
            "duration_formatted": self.duration_formatted,
            "preview_url": self.preview_url,
            "image_url": self.image_url,
            "external_urls": dict(self.external_urls),
            "provider_ids": dict(self.provider_ids),
            "source": self.source.value,
            "uri": self.uri,
            "audio_features": self.audio_features.to_dict() if self.audio_features else None,
            "genres": list(self.genres)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        """Create Track from dictionary representation."""
        audio_features = None
        if data.get("audio_features"):
            audio_features = AudioFeatures.from_dict(data["audio_features"])

        return cls(
            id=data["id"],
            name=data["name"],
            artist=data["artist"],
            duration_ms=data.get("duration_ms", 0),
            source=Provider(data["source"]),
            uri=data.get("uri", ""),
            album=data.get("album"),
            preview_url=data.get("preview_url"),
            image_url=data.get("image_url"),
            external_urls=data.get("external_urls", {}),
            provider_ids=data.get("provider_ids", {}),
            audio_features=audio_features,
            genres=data.get("genres", [])
        )

    @classmethod
    def from_spotify_data(cls, spotify_track: Dict[str, Any], audio_features: Optional[AudioFeatures] = None) -> "Track":
        """Create Track from Spotify API response."""
        artists = [artist["name"] for artist in spotify_track.get("artists", [])]
        album = spotify_track.get("album") or {}
        images = album.get("images") or []

        return cls(
            id=spotify_track["id"],
            name=spotify_track["name"],
            artist=artists[0] if artists else "Unknown Artist",
            duration_ms=spotify_track.get("duration_ms", 0),
            source=Provider.SPOTIFY,
            uri=spotify_track.get("uri", f"spotify:track:{spotify_track['id']}"),
            album=album.get("name"),
            preview_url=spotify_track.get("preview_url"),
            image_url=images[0]["url"] if images else None,
            external_urls={"spotify": spotify_track.get("external_urls", {}).get("spotify", "")},
            provider_ids={"spotify": spotify_track["id"]},
            audio_features=audio_features
        )

    @classmethod
    def from_soundcloud_data(cls, soundcloud_track: Dict[str, Any]) -> "Track":
        """Create Track from SoundCloud API response."""
        track_id = str(soundcloud_track["id"])
        user = soundcloud_track.get("user") or {}
        genre = soundcloud_track.get("genre")

        return cls(
            id=track_id,
            name=soundcloud_track.get("title", "Unknown Track"),
            artist=user.get("username", "Unknown Artist"),
            duration_ms=soundcloud_track.get("duration", 0),
            source=Provider.SOUNDCLOUD,
            uri=soundcloud_track.get("uri", f"soundcloud:tracks:{track_id}"),
            preview_url=soundcloud_track.get("stream_url"),
            image_url=soundcloud_track.get("artwork_url"),
            external_urls={"soundcloud": soundcloud_track.get("permalink_url", "")},
            provider_ids={"soundcloud": track_id},
            genres=[genre.lower()] if genre else []
        )
