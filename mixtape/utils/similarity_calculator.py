"""
Candidate scoring against a listener's profile and request.
Combines audio-feature proximity, novelty and mood-tag overlap into one score.
"""

from typing import Iterable, List, Optional, Set
from config.settings import ScoringWeights
from mixtape.models import AudioFeatures, Track

NEUTRAL_DISTANCE = 0.5

class SimilarityCalculator:
    """Calculate candidate scores from weighted terms."""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights()

    def feature_distance(self, track: Track, reference: Optional[AudioFeatures]) -> float:
        """Normalized distance in [0, 1]; neutral midpoint when either side has no features."""
        if not track.has_audio_features or reference is None or reference.is_empty:
            return NEUTRAL_DISTANCE

        distance = track.audio_features.distance(reference, tempo_scale=self.weights.tempo_scale)
        if distance is None:
            return NEUTRAL_DISTANCE
        return distance

    def novelty(self, track: Track, familiar_ids: Set[str], discovery_ratio: float) -> float:
        """``discovery_ratio`` for unfamiliar tracks, its complement for familiar ones."""
        own_ids = set(track.provider_ids.values()) | {track.id}
        if own_ids & familiar_ids:
            return 1.0 - discovery_ratio
        return discovery_ratio

    def mood_overlap(self, track: Track, mood_tags: List[str], matched_tags: Iterable[str] = ()) -> float:
        """
        Fraction of requested mood tags that produced this candidate's search
        query or appear in its title or genres.
        """
        if not mood_tags:
            return 0.0

        matched = {tag.lower() for tag in matched_tags}
        haystack = " ".join([track.name.lower()] + [genre.lower() for genre in track.genres])

        hits = 0
        for tag in mood_tags:
            tag = tag.lower()
            if tag in matched or tag in haystack:
                hits += 1

        return hits / len(mood_tags)

    def score(
        self,
        track: Track,
        reference: Optional[AudioFeatures],
        familiar_ids: Set[str],
        discovery_ratio: float,
        mood_tags: List[str],
        matched_tags: Iterable[str] = ()
    ) -> float:
        return (
            self.weights.feature_match * (1.0 - self.feature_distance(track, reference)) +
            self.weights.novelty * self.novelty(track, familiar_ids, discovery_ratio) +
            self.weights.mood_overlap * self.mood_overlap(track, mood_tags, matched_tags)
        )
