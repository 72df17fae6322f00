"""
Streaming provider identifiers shared by every layer.
"""

from enum import Enum

class Provider(str, Enum):
    """External streaming catalog supplying search and personalization data."""
    SPOTIFY = "spotify"
    SOUNDCLOUD = "soundcloud"

    @classmethod
    def parse(cls, value: str) -> "Provider":
        """Resolve a provider from its string name (case-insensitive)."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Unknown provider: {value}")
