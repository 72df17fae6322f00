"""
Audio features data model for music tracks and taste profiles.
Provides a standardized representation of audio characteristics across providers.
"""

from dataclasses import dataclass, fields
from typing import Dict, Any, Optional, Iterable
import numpy as np

UNIT_FEATURES = (
    "energy",
    "danceability",
    "valence",
    "acousticness",
    "instrumentalness",
    "liveness",
    "speechiness",
)

FEATURE_NAMES = UNIT_FEATURES + ("tempo",)

@dataclass(frozen=True)
class AudioFeatures:
    """Standardized audio features for a track or an averaged profile."""
    energy: Optional[float] = None           # Musical intensity (0.0-1.0)
    danceability: Optional[float] = None     # Rhythm and beat strength (0.0-1.0)
    valence: Optional[float] = None          # Musical positivity (0.0-1.0)
    tempo: Optional[float] = None            # Beats per minute (provider-native)
    acousticness: Optional[float] = None     # Acoustic vs electronic (0.0-1.0)
    instrumentalness: Optional[float] = None # Vocal vs instrumental (0.0-1.0)
    liveness: Optional[float] = None         # Live performance detection (0.0-1.0)
    speechiness: Optional[float] = None      # Speech-like qualities (0.0-1.0)

    def __post_init__(self):
        """Validate feature ranges after initialization."""
        for name in UNIT_FEATURES:
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValueError(f"{name.title()} must be between 0.0 and 1.0, got {value}")
        if self.tempo is not None and self.tempo < 0:
            raise ValueError(f"Tempo must be non-negative, got {self.tempo}")

    @property
    def is_empty(self) -> bool:
        """True when no feature carries a value."""
        return all(getattr(self, name) is None for name in FEATURE_NAMES)

    def present(self) -> Dict[str, float]:
        """Features that carry a value."""
        return {
            name: getattr(self, name)
            for name in FEATURE_NAMES
            if getattr(self, name) is not None
        }

    def distance(self, other: "AudioFeatures", tempo_scale: float = 250.0) -> Optional[float]:
        """
        Mean absolute difference over the features both sides carry.

        Tempo is divided by ``tempo_scale`` so every term lies in [0, 1].
        Returns None when the two feature sets share no feature.
        """
        diffs = []
        for name, value in self.present().items():
            other_value = getattr(other, name)
            if other_value is None:
                continue
            if name == "tempo":
                diff = abs(value - other_value) / tempo_scale
            else:
                diff = abs(value - other_value)
            diffs.append(min(diff, 1.0))

        if not diffs:
            return None
        return float(np.mean(diffs))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AudioFeatures":
        """Create AudioFeatures from a dictionary, ignoring unknown keys."""
        if not data:
            return cls()
        values = {}
        for name in FEATURE_NAMES:
            value = data.get(name)
            values[name] = float(value) if value is not None else None
        return cls(**values)

    @classmethod
    def average(cls, vectors: Iterable["AudioFeatures"]) -> "AudioFeatures":
        """
        Per-feature arithmetic mean.

        A feature missing on a vector is left out of that feature's mean
        instead of counting as zero.
        """
        columns: Dict[str, list] = {name: [] for name in FEATURE_NAMES}
        for vector in vectors:
            for name, value in vector.present().items():
                columns[name].append(value)

        averages = {
            name: float(np.mean(values)) if values else None
            for name, values in columns.items()
        }
        return cls(**averages)
