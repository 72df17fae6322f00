#!/usr/bin/env python3
"""
Unit tests for candidate scoring.
"""

import pytest
from config.settings import ScoringWeights
from mixtape.models import AudioFeatures
from mixtape.utils.similarity_calculator import NEUTRAL_DISTANCE, SimilarityCalculator

class TestSimilarityCalculator:
    """Unit tests for SimilarityCalculator."""

    def setup_method(self):
        self.calculator = SimilarityCalculator(ScoringWeights(feature_match=0.5, novelty=0.2, mood_overlap=0.3))

    def test_feature_distance_neutral_without_features(self, make_track, sample_audio_features):
        bare = make_track("t1")
        assert self.calculator.feature_distance(bare, sample_audio_features) == NEUTRAL_DISTANCE
        assert self.calculator.feature_distance(make_track("t2", energy=0.3), None) == NEUTRAL_DISTANCE
        assert self.calculator.feature_distance(make_track("t3", energy=0.3), AudioFeatures()) == NEUTRAL_DISTANCE

    def test_feature_distance_identical_is_zero(self, make_track, sample_audio_features):
        track = make_track("t1", features=sample_audio_features)
        assert self.calculator.feature_distance(track, sample_audio_features) == 0.0

    def test_novelty_rewards_unfamiliar_tracks(self, make_track):
        familiar = make_track("fav1")
        fresh = make_track("new1")

        assert self.calculator.novelty(fresh, {"fav1"}, 0.8) == 0.8
        assert self.calculator.novelty(familiar, {"fav1"}, 0.8) == pytest.approx(0.2)

    def test_mood_overlap(self, make_track):
        track = make_track("t1", name="Sunny Morning", genres=["chill house"])

        assert self.calculator.mood_overlap(track, []) == 0.0
        assert self.calculator.mood_overlap(track, ["sunny", "chill"]) == 1.0
        assert self.calculator.mood_overlap(track, ["dark", "chill"]) == 0.5
        assert self.calculator.mood_overlap(track, ["dark"], matched_tags=["dark"]) == 1.0

    def test_score_combines_weighted_terms(self, make_track, sample_audio_features):
        track = make_track("t1", name="Dark Pulse", features=sample_audio_features)

        score = self.calculator.score(
            track,
            reference=sample_audio_features,
            familiar_ids=set(),
            discovery_ratio=0.5,
            mood_tags=["dark", "uplifting"]
        )

        # 0.5 * 1.0 + 0.2 * 0.5 + 0.3 * 0.5
        assert score == pytest.approx(0.75)

    def test_closer_features_score_higher(self, make_track):
        reference = AudioFeatures(energy=0.8)
        close = make_track("close", energy=0.75)
        far = make_track("far", energy=0.1)

        close_score = self.calculator.score(close, reference, set(), 0.3, [])
        far_score = self.calculator.score(far, reference, set(), 0.3, [])

        assert close_score > far_score
