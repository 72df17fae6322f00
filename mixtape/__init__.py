"""Cross-provider mixtape synthesis engine."""

__version__ = "0.1.0"
