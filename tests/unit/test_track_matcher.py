#!/usr/bin/env python3
"""
Unit tests for cross-provider track deduplication.
"""

import pytest
from config.settings import DedupPolicy
from mixtape.models import Provider
from mixtape.utils.track_matcher import TrackMatcher

class TestNormalization:
    """Unit tests for title and artist normalization."""

    def setup_method(self):
        self.matcher = TrackMatcher()

    def test_normalize_string(self):
        assert self.matcher.normalize_string("Beyoncé - Halo!") == "beyonce halo"
        assert self.matcher.normalize_string("  Spaced   Out ") == "spaced out"
        assert self.matcher.normalize_string("") == ""

    def test_normalize_artist_drops_featured_acts(self):
        assert self.matcher.normalize_artist("Calvin Harris feat. Rihanna") == "calvin harris"
        assert self.matcher.normalize_artist("Disclosure & Sam Smith") == "disclosure"
        assert self.matcher.normalize_artist("Tycho") == "tycho"

    def test_levenshtein_distance(self):
        assert self.matcher.levenshtein_distance("kitten", "sitting") == 3
        assert self.matcher.levenshtein_distance("", "abc") == 3
        assert self.matcher.levenshtein_distance("same", "same") == 0

    def test_title_similarity(self):
        assert self.matcher.title_similarity("Night Drive", "night drive") == 1.0
        assert self.matcher.title_similarity("Night Drive", "") == 0.0
        assert 0.0 < self.matcher.title_similarity("Night Drive", "Night Dive") < 1.0

class TestDeduplication:
    """Unit tests for TrackMatcher.deduplicate."""

    def setup_method(self):
        self.matcher = TrackMatcher(DedupPolicy(title_similarity=0.9, duration_delta_ms=2000))

    def test_exact_key_match_across_providers(self, make_track):
        spotify = make_track("sp1", name="Kiara", artist="Bonobo", source=Provider.SPOTIFY, energy=0.4)
        soundcloud = make_track("sc1", name="kiara", artist="BONOBO", source=Provider.SOUNDCLOUD,
                                duration_ms=260000)

        result = self.matcher.deduplicate([soundcloud, spotify])

        assert len(result) == 1
        # Canonical is the member with audio features
        assert result[0].id == "sp1"
        assert result[0].provider_ids == {"spotify": "sp1", "soundcloud": "sc1"}

    def test_near_title_within_duration_delta(self, make_track):
        a = make_track("a", name="Midnight City (Remastered)", artist="M83", duration_ms=243000)
        b = make_track("b", name="Midnight City Remastered", artist="M83 Official", duration_ms=244500,
                       source=Provider.SOUNDCLOUD)

        assert self.matcher.is_duplicate(a, b)
        assert len(self.matcher.deduplicate([a, b])) == 1

    def test_near_title_outside_duration_delta(self, make_track):
        a = make_track("a", name="Midnight City", artist="M83", duration_ms=243000)
        b = make_track("b", name="Midnight Citi", artist="Someone", duration_ms=300000)

        assert not self.matcher.is_duplicate(a, b)
        assert len(self.matcher.deduplicate([a, b])) == 2

    def test_first_seen_canonical_without_features(self, make_track):
        first = make_track("sc1", name="Song", artist="X", source=Provider.SOUNDCLOUD)
        second = make_track("sc2", name="Song", artist="X", source=Provider.SOUNDCLOUD)

        result = self.matcher.deduplicate([first, second])

        assert [t.id for t in result] == ["sc1"]

    def test_groups_close_transitively(self, make_track):
        """a~b and b~c merge into one even when a and c alone would not."""
        a = make_track("a", name="abcdefghijklmnopqrst", artist="p", duration_ms=200000)
        b = make_track("b", name="abcdefghijklmnopqrsz", artist="q", duration_ms=201500)
        c = make_track("c", name="abcdefghijklmnopqrzz", artist="r", duration_ms=203000)

        assert not self.matcher.is_duplicate(a, c)
        result = self.matcher.deduplicate([a, b, c])

        assert len(result) == 1
        assert set(result[0].provider_ids.values()) == {"a", "b", "c"}

    def test_idempotent(self, make_track):
        tracks = [
            make_track("1", name="Kiara", artist="Bonobo"),
            make_track("2", name="Kiara", artist="Bonobo", source=Provider.SOUNDCLOUD),
            make_track("3", name="Cirrus", artist="Bonobo"),
            make_track("4", name="Awake", artist="Tycho"),
            make_track("5", name="awake!", artist="tycho", source=Provider.SOUNDCLOUD)
        ]

        once = self.matcher.deduplicate(tracks)
        twice = self.matcher.deduplicate(once)

        assert once == twice
        assert [t.id for t in once] == ["1", "3", "4"]

    def test_empty(self):
        assert self.matcher.deduplicate([]) == []
