"""
Mixtape intent models.

``IntentExtraction`` is the raw structured output of the language model,
validated with pydantic. ``MixtapeIntent`` is the defaulted, clamped intent the
mixing engine consumes; it is ephemeral and never persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .provider import Provider

class EnergyProfile(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"
    STEADY = "steady"
    VARIABLE = "variable"

@dataclass(frozen=True)
class MixtapeIntent:
    """Structured, validated representation of a mixtape request."""
    mood_tags: List[str]
    target_duration_seconds: int
    target_track_count: int
    energy_profile: EnergyProfile
    source_weights: Dict[Provider, float]
    discovery_ratio: float
    track_count_explicit: bool = False
    name: Optional[str] = None
    description: Optional[str] = None
    explanation: Optional[str] = None
    search_queries: List[str] = field(default_factory=list)

    @property
    def weighted_providers(self) -> List[Provider]:
        return [provider for provider, weight in self.source_weights.items() if weight > 0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mood_tags": list(self.mood_tags),
            "target_duration_seconds": self.target_duration_seconds,
            "target_track_count": self.target_track_count,
            "track_count_explicit": self.track_count_explicit,
            "energy_profile": self.energy_profile.value,
            "source_weights": {p.value: w for p, w in self.source_weights.items()},
            "discovery_ratio": self.discovery_ratio,
            "name": self.name,
            "description": self.description,
            "explanation": self.explanation,
            "search_queries": list(self.search_queries)
        }

class IntentExtraction(BaseModel):
    """Function-call arguments returned by the language model."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    explanation: Optional[str] = None
    search_queries: List[str] = Field(default_factory=list, alias="searchQueries")
    mood_tags: List[str] = Field(default_factory=list, alias="moodTags")
    target_duration: Optional[float] = Field(None, alias="targetDuration")
    target_track_count: Optional[int] = Field(None, alias="targetTrackCount")
    energy_profile: Optional[EnergyProfile] = Field(None, alias="energyProfile")
    include_spotify: Optional[bool] = Field(None, alias="includeSpotify")
    include_soundcloud: Optional[bool] = Field(None, alias="includeSoundcloud")
    discovery_ratio: Optional[float] = Field(None, alias="discoveryRatio")

    @field_validator("mood_tags", "search_queries", mode="before")
    @classmethod
    def _clean_strings(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        cleaned = []
        for item in value:
            text = str(item).strip()
            if text and text.lower() not in (c.lower() for c in cleaned):
                cleaned.append(text)
        return cleaned

    @field_validator("target_duration", "target_track_count", mode="before")
    @classmethod
    def _positive_or_none(cls, value):
        if value is None or value == "":
            return None
        if float(value) <= 0:
            return None
        return value

    @field_validator("energy_profile", mode="before")
    @classmethod
    def _known_energy_profile(cls, value):
        if isinstance(value, str) and value.lower() in {e.value for e in EnergyProfile}:
            return value.lower()
        return None

    @property
    def normalized_mood_tags(self) -> List[str]:
        return [tag.lower() for tag in self.mood_tags]

    @property
    def has_signal(self) -> bool:
        """True when the extraction carries any mood or length signal."""
        return bool(self.mood_tags) or self.target_duration is not None or self.target_track_count is not None

    @staticmethod
    def tool_schema() -> Dict[str, Any]:
        """JSON schema of the ``create_mixtape`` function the model must call."""
        return {
            "name": "create_mixtape",
            "description": "Structure a listener's mixtape request.",
            "parameters": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Short playlist title"},
                    "description": {"type": "string", "description": "One-sentence playlist description"},
                    "explanation": {"type": "string", "description": "Why this mix fits the request"},
                    "searchQueries": {"type": "array", "items": {"type": "string"}},
                    "moodTags": {"type": "array", "items": {"type": "string"}},
                    "targetDuration": {"type": "number", "description": "Target length in seconds"},
                    "targetTrackCount": {"type": "integer"},
                    "energyProfile": {
                        "type": "string",
                        "enum": [e.value for e in EnergyProfile]
                    },
                    "includeSpotify": {"type": "boolean"},
                    "includeSoundcloud": {"type": "boolean"},
                    "discoveryRatio": {"type": "number", "minimum": 0, "maximum": 1}
                },
                "required": ["name", "description", "explanation", "searchQueries", "moodTags"]
            }
        }

class PlaylistDescription(BaseModel):
    """Function-call arguments of the ``describe_playlist`` call."""
    model_config = ConfigDict(extra="ignore")

    description: str
    explanation: Optional[str] = None

    @staticmethod
    def tool_schema() -> Dict[str, Any]:
        return {
            "name": "describe_playlist",
            "description": "Describe and justify a finished track selection.",
            "parameters": {
                "type": "object",
                "properties": {
                    "description": {"type": "string"},
                    "explanation": {"type": "string"}
                },
                "required": ["description", "explanation"]
            }
        }
