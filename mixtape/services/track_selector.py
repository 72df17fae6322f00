"""
Greedy track selection under duration, source-diversity and artist constraints.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from config.settings import SelectionPolicy
from mixtape.models import EnergyProfile, MixtapeIntent, Provider, Track

logger = logging.getLogger(__name__)

HARD_TRACK_CAP = 200

def artist_key(track: Track) -> str:
    return track.artist.strip().lower()

@dataclass
class ScoredCandidate:
    """A deduplicated candidate with its score."""
    track: Track
    score: float

@dataclass
class SelectionResult:
    selected: List[ScoredCandidate] = field(default_factory=list)
    shorter_than_requested: bool = False

    @property
    def tracks(self) -> List[Track]:
        return [candidate.track for candidate in self.selected]

    @property
    def total_duration_ms(self) -> int:
        return sum(candidate.track.duration_ms for candidate in self.selected)

class TrackSelector:
    """Pick the highest-scored admissible candidate until the request is met."""

    def __init__(self, policy: Optional[SelectionPolicy] = None, max_tracks: int = HARD_TRACK_CAP):
        self.policy = policy or SelectionPolicy()
        self.max_tracks = min(max_tracks, HARD_TRACK_CAP)

    def artist_cap(self, intent: MixtapeIntent) -> Optional[int]:
        """Per-artist limit of a ``variable`` mix, ``None`` for every other profile."""
        if intent.energy_profile != EnergyProfile.VARIABLE:
            return None
        return max(1, math.ceil(intent.target_track_count / 4))

    def falls_short(self, tracks: List[Track], intent: MixtapeIntent) -> bool:
        """Whether ``tracks`` miss the requested count, or the duration floor when no count was asked for."""
        if intent.track_count_explicit:
            return len(tracks) < min(intent.target_track_count, self.max_tracks)
        target_ms = intent.target_duration_seconds * 1000
        total_ms = sum(track.duration_ms for track in tracks)
        return total_ms < target_ms * (1 - self.policy.duration_tolerance)

    def select(self, candidates: List[ScoredCandidate], intent: MixtapeIntent) -> SelectionResult:
        """
        Select tracks for an intent.

        A candidate is inadmissible when it would push the running duration past
        the tolerance ceiling, leave another weighted source under its minimum
        share, or (in a ``variable`` mix) exceed the per-artist cap or hold more
        tracks than could be kept apart. Selection stops at the requested count
        or duration, whichever comes first, or when nothing is admissible.
        """
        pool = sorted(candidates, key=lambda c: c.score, reverse=True)
        target_ms = intent.target_duration_seconds * 1000
        ceiling_ms = target_ms * (1 + self.policy.duration_tolerance)
        count_governs = intent.track_count_explicit
        target_count = min(intent.target_track_count, self.max_tracks)
        artist_cap = self.artist_cap(intent)

        weighted = intent.weighted_providers
        available_sources = {c.track.source for c in pool}
        quota_active = len(weighted) > 1 and all(p in available_sources for p in weighted)

        selected: List[ScoredCandidate] = []
        source_counts: Dict[Provider, int] = Counter()
        artist_counts: Dict[str, int] = Counter()
        total_ms = 0

        while pool:
            if len(selected) >= self.max_tracks:
                break
            if count_governs and len(selected) >= target_count:
                break
            if total_ms >= target_ms:
                break

            n_after = len(selected) + 1
            pick = None
            for candidate in pool:
                if total_ms + candidate.track.duration_ms > ceiling_ms:
                    continue
                if artist_cap is not None:
                    held = artist_counts[artist_key(candidate.track)] + 1
                    # No two neighbours may share an artist, so one artist can hold at most half
                    if held > artist_cap or held > (n_after + 1) // 2:
                        continue
                if quota_active and not self._keeps_quota(candidate, n_after, source_counts, weighted):
                    continue
                pick = candidate
                break

            if pick is None:
                break

            pool.remove(pick)
            selected.append(pick)
            source_counts[pick.track.source] += 1
            artist_counts[artist_key(pick.track)] += 1
            total_ms += pick.track.duration_ms

        shorter = self.falls_short([c.track for c in selected], intent)
        if shorter:
            logger.info(
                f"Selection short of request: {len(selected)} tracks, {total_ms // 1000}s "
                f"(target {intent.target_duration_seconds}s)"
            )

        return SelectionResult(selected=selected, shorter_than_requested=shorter)

    def _keeps_quota(
        self,
        candidate: ScoredCandidate,
        n_after: int,
        source_counts: Dict[Provider, int],
        weighted: List[Provider]
    ) -> bool:
        """Whether adding ``candidate`` keeps every other weighted source at its minimum share."""
        if n_after < self.policy.quota_min_tracks:
            return True
        for provider in weighted:
            if provider == candidate.track.source:
                continue
            if source_counts[provider] / n_after < self.policy.min_source_share:
                return False
        return True
