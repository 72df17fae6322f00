"""Utility modules for mixtape synthesis."""

from .rate_limiter import RateLimiter
from .track_matcher import TrackMatcher
from .similarity_calculator import SimilarityCalculator

__all__ = [
    'RateLimiter',
    'TrackMatcher',
    'SimilarityCalculator'
]
