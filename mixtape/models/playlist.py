"""
Playlist data model representing one synthesized, ordered track sequence.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List
from .intent import EnergyProfile
from .provider import Provider
from .track import Track

@dataclass(frozen=True)
class Playlist:
    """A synthesized mixtape. Only ``exported_to`` changes after creation."""
    id: str
    user_id: str
    name: str
    description: str
    tracks: List[Track]
    prompt: str
    message_id: Optional[str] = None
    explanation: Optional[str] = None
    exported_to: List[Provider] = field(default_factory=list)
    mood_tags: List[str] = field(default_factory=list)
    energy_profile: EnergyProfile = EnergyProfile.STEADY
    target_duration_seconds: Optional[int] = None
    degraded: bool = False
    failed_providers: List[Provider] = field(default_factory=list)
    shorter_than_requested: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    @property
    def track_count(self) -> int:
        """Get number of tracks in playlist."""
        return len(self.tracks)

    @property
    def total_duration_ms(self) -> int:
        return sum(track.duration_ms for track in self.tracks)

    @property
    def total_duration_seconds(self) -> int:
        """Get total duration in whole seconds."""
        return round(self.total_duration_ms / 1000.0)

    @property
    def total_duration_formatted(self) -> str:
        """Get formatted total duration string (HH:MM:SS)."""
        total_seconds = self.total_duration_seconds
        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        seconds = total_seconds % 60

        if hours > 0:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        else:
            return f"{minutes}:{seconds:02d}"

    def source_counts(self) -> Dict[Provider, int]:
        """Number of tracks counted against each provider."""
        counts = {provider: 0 for provider in Provider}
        for track in self.tracks:
            counts[track.source] += 1
        return counts

    def with_message(self, message_id: str) -> "Playlist":
        return replace(self, message_id=message_id)

    def with_export(self, provider: Provider) -> "Playlist":
        if provider in self.exported_to:
            return self
        return replace(self, exported_to=list(self.exported_to) + [provider])

    def to_dict(self) -> Dict[str, Any]:
        """Convert playlist to dictionary representation."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message_id": self.message_id,
            "name": self.name,
            "description": self.description,
            "explanation": self.explanation,
            "tracks": [track.to_dict() for track in self.tracks],
            "track_count": self.track_count,
            "total_duration_seconds": self.total_duration_seconds,
            "total_duration_formatted": self.total_duration_formatted,
            "prompt": self.prompt,
            "exported_to": [provider.value for provider in self.exported_to],
            "mood_tags": list(self.mood_tags),
            "energy_profile": self.energy_profile.value,
            "target_duration_seconds": self.target_duration_seconds,
            "degraded": self.degraded,
            "failed_providers": [provider.value for provider in self.failed_providers],
            "shorter_than_requested": self.shorter_than_requested,
            "created_at": self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Playlist":
        """Create Playlist from dictionary representation."""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            name=data["name"],
            description=data.get("description") or "",
            tracks=[Track.from_dict(track_data) for track_data in data.get("tracks", [])],
            prompt=data.get("prompt") or "",
            message_id=data.get("message_id"),
            explanation=data.get("explanation"),
            exported_to=[Provider(p) for p in data.get("exported_to", [])],
            mood_tags=data.get("mood_tags", []),
            energy_profile=EnergyProfile(data.get("energy_profile", EnergyProfile.STEADY.value)),
            target_duration_seconds=data.get("target_duration_seconds"),
            degraded=data.get("degraded", False),
            failed_providers=[Provider(p) for p in data.get("failed_providers", [])],
            shorter_than_requested=data.get("shorter_than_requested", False),
            created_at=datetime.fromisoformat(data["created_at"])
        )
