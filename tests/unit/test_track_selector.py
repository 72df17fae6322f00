#!/usr/bin/env python3
"""
Unit tests for greedy track selection.
"""

import pytest
from config.settings import SelectionPolicy
from mixtape.models import EnergyProfile, Provider
from mixtape.services.track_selector import ScoredCandidate, TrackSelector

class TestTrackSelector:
    """Unit tests for TrackSelector."""

    def setup_method(self):
        self.selector = TrackSelector(SelectionPolicy())

    def _pool(self, make_track, count, source=Provider.SPOTIFY, duration_ms=200000, start=1.0, prefix="t"):
        return [
            ScoredCandidate(
                track=make_track(f"{prefix}{i}", artist=f"{prefix}-artist-{i}", source=source,
                                 duration_ms=duration_ms),
                score=start - i * 0.01
            )
            for i in range(count)
        ]

    def test_duration_within_tolerance(self, make_track, make_intent):
        intent = make_intent(
            target_duration_seconds=1800,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        pool = self._pool(make_track, 30, duration_ms=210000)

        result = self.selector.select(pool, intent)

        total = result.total_duration_ms / 1000
        assert 1800 * 0.9 <= total <= 1800 * 1.1
        assert not result.shorter_than_requested

    def test_skips_track_that_overshoots_ceiling(self, make_track, make_intent):
        intent = make_intent(
            target_duration_seconds=600,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        pool = [
            ScoredCandidate(make_track("long", artist="a", duration_ms=500000), 0.9),
            ScoredCandidate(make_track("huge", artist="b", duration_ms=400000), 0.8),
            ScoredCandidate(make_track("short", artist="c", duration_ms=120000), 0.7)
        ]

        result = self.selector.select(pool, intent)

        assert [t.id for t in result.tracks] == ["long", "short"]
        assert result.total_duration_ms <= 660000

    def test_highest_scores_first(self, make_track, make_intent):
        intent = make_intent(
            target_duration_seconds=600,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        pool = list(reversed(self._pool(make_track, 10)))

        result = self.selector.select(pool, intent)

        assert [t.id for t in result.tracks] == ["t0", "t1", "t2"]

    def test_minimum_source_share(self, make_track, make_intent):
        """Each weighted source keeps at least 20% of the tracks."""
        intent = make_intent(target_duration_seconds=2000)
        spotify = self._pool(make_track, 20, source=Provider.SPOTIFY, start=1.0, prefix="sp")
        soundcloud = self._pool(make_track, 20, source=Provider.SOUNDCLOUD, start=0.5, prefix="sc")

        result = self.selector.select(spotify + soundcloud, intent)

        counts = {p: 0 for p in Provider}
        for track in result.tracks:
            counts[track.source] += 1
        assert len(result.tracks) == 10
        assert counts[Provider.SOUNDCLOUD] / len(result.tracks) >= 0.2
        assert counts[Provider.SPOTIFY] > counts[Provider.SOUNDCLOUD]

    def test_quota_relaxed_when_source_has_no_candidates(self, make_track, make_intent):
        intent = make_intent(target_duration_seconds=2000)
        spotify = self._pool(make_track, 20, source=Provider.SPOTIFY)

        result = self.selector.select(spotify, intent)

        assert len(result.tracks) == 10
        assert all(t.source == Provider.SPOTIFY for t in result.tracks)

    def test_artist_cap_for_variable(self, make_track, make_intent):
        intent = make_intent(
            target_duration_seconds=1600,
            target_track_count=8,
            energy_profile=EnergyProfile.VARIABLE,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        same_artist = [
            ScoredCandidate(make_track(f"same{i}", artist="Prolific"), 1.0 - i * 0.01)
            for i in range(10)
        ]
        others = self._pool(make_track, 10, start=0.5)

        result = self.selector.select(same_artist + others, intent)

        prolific = [t for t in result.tracks if t.artist == "Prolific"]
        assert len(prolific) == 2

    def test_explicit_count_governs(self, make_track, make_intent):
        intent = make_intent(
            target_duration_seconds=1500,
            target_track_count=5,
            track_count_explicit=True,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        pool = self._pool(make_track, 10, duration_ms=200000)

        result = self.selector.select(pool, intent)

        assert len(result.tracks) == 5
        assert not result.shorter_than_requested

    def test_explicit_count_still_bounded_by_duration(self, make_track, make_intent):
        """Count and duration both bound the mix; the ceiling is never crossed."""
        intent = make_intent(
            target_duration_seconds=2100,
            target_track_count=10,
            track_count_explicit=True,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        pool = self._pool(make_track, 20, duration_ms=360000)

        result = self.selector.select(pool, intent)

        assert len(result.tracks) == 6
        assert result.total_duration_ms <= 2100 * 1.1 * 1000
        assert result.shorter_than_requested

    def test_quota_stops_selection_instead_of_breaking_share(self, make_track, make_intent):
        intent = make_intent(target_duration_seconds=2000)
        spotify = self._pool(make_track, 20, source=Provider.SPOTIFY, start=1.0, prefix="sp")
        soundcloud = [ScoredCandidate(make_track("sc0", artist="sc-artist", source=Provider.SOUNDCLOUD), 0.1)]

        result = self.selector.select(spotify + soundcloud, intent)

        soundcloud_count = sum(1 for t in result.tracks if t.source == Provider.SOUNDCLOUD)
        assert len(result.tracks) == 5
        assert soundcloud_count / len(result.tracks) >= 0.2
        assert result.shorter_than_requested

    def test_variable_keeps_artists_spaceable(self, make_track, make_intent):
        intent = make_intent(
            target_duration_seconds=1600,
            target_track_count=8,
            energy_profile=EnergyProfile.VARIABLE,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        pool = [
            ScoredCandidate(make_track("a0", artist="Solo"), 0.9),
            ScoredCandidate(make_track("a1", artist="Solo"), 0.8),
            ScoredCandidate(make_track("a2", artist="Solo"), 0.7)
        ]

        result = self.selector.select(pool, intent)

        assert [t.id for t in result.tracks] == ["a0"]
        assert result.shorter_than_requested

    def test_artist_cap_only_for_variable(self, make_intent):
        assert self.selector.artist_cap(make_intent(target_track_count=9)) is None
        variable = make_intent(target_track_count=9, energy_profile=EnergyProfile.VARIABLE)
        assert self.selector.artist_cap(variable) == 3

    def test_shorter_than_requested(self, make_track, make_intent):
        intent = make_intent(
            target_duration_seconds=3600,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        pool = self._pool(make_track, 3)

        result = self.selector.select(pool, intent)

        assert len(result.tracks) == 3
        assert result.shorter_than_requested

    def test_hard_cap(self, make_track, make_intent):
        selector = TrackSelector(SelectionPolicy(), max_tracks=500)
        intent = make_intent(
            target_duration_seconds=14400,
            source_weights={Provider.SPOTIFY: 1.0, Provider.SOUNDCLOUD: 0.0}
        )
        pool = self._pool(make_track, 300, duration_ms=30000, start=10.0)

        result = selector.select(pool, intent)

        assert selector.max_tracks == 200
        assert len(result.tracks) == 200

    def test_empty_pool(self, make_intent):
        result = self.selector.select([], make_intent())
        assert result.selected == []
        assert result.shorter_than_requested
