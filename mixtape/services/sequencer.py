"""
Orders selected tracks along the requested energy profile.
"""

import logging
import math
import random
from collections import Counter, defaultdict
from typing import Dict, List, Optional
from mixtape.models import EnergyProfile
from mixtape.services.track_selector import ScoredCandidate, artist_key

logger = logging.getLogger(__name__)

DEFAULT_ENERGY = 0.5

class Sequencer:
    """Energy-curve ordering with artist spacing."""

    def __init__(self, max_consecutive_same_artist: int = 2, seed: Optional[int] = None):
        self.max_consecutive_same_artist = max_consecutive_same_artist
        self.seed = seed

    def sequence(
        self,
        selected: List[ScoredCandidate],
        energy_profile: EnergyProfile,
        fallback_energy: Optional[float] = None,
        artist_cap: Optional[int] = None
    ) -> List[ScoredCandidate]:
        """
        Order tracks for an energy profile.

        Tracks without an energy value take ``fallback_energy`` (the profile's
        average), else 0.5. ``variable`` drops tracks above ``artist_cap`` per
        artist (ceil(n/4) of the selection when not given).
        """
        if not selected:
            return []

        default = fallback_energy if fallback_energy is not None else DEFAULT_ENERGY

        def energy(candidate: ScoredCandidate) -> float:
            value = candidate.track.energy
            return value if value is not None else default

        if energy_profile == EnergyProfile.ASCENDING:
            return sorted(selected, key=lambda c: (energy(c), -c.score))
        if energy_profile == EnergyProfile.DESCENDING:
            return sorted(selected, key=lambda c: (-energy(c), -c.score))
        if energy_profile == EnergyProfile.VARIABLE:
            return self._constrained_shuffle(selected, artist_cap)

        by_energy = sorted(selected, key=lambda c: (energy(c), -c.score))
        return self._interleave_artists(by_energy, self.max_consecutive_same_artist)

    def _interleave_artists(self, ordered: List[ScoredCandidate], max_run: int) -> List[ScoredCandidate]:
        """Keep the given order but pull forward a different artist when a run gets too long."""
        remaining = list(ordered)
        result: List[ScoredCandidate] = []

        while remaining:
            run_artist = None
            if len(result) >= max_run:
                tail = {artist_key(c.track) for c in result[-max_run:]}
                if len(tail) == 1:
                    run_artist = tail.pop()

            index = 0
            if run_artist is not None:
                for i, candidate in enumerate(remaining):
                    if artist_key(candidate.track) != run_artist:
                        index = i
                        break
            result.append(remaining.pop(index))

        return result

    def _apply_artist_cap(self, selected: List[ScoredCandidate], cap: int) -> List[ScoredCandidate]:
        """Drop each artist's lowest-scored tracks beyond ``cap``."""
        by_artist: Dict[str, List[ScoredCandidate]] = defaultdict(list)
        for candidate in selected:
            by_artist[artist_key(candidate.track)].append(candidate)

        dropped = set()
        for tracks in by_artist.values():
            if len(tracks) > cap:
                ranked = sorted(tracks, key=lambda c: c.score, reverse=True)
                dropped.update(id(c) for c in ranked[cap:])

        if dropped:
            logger.debug(f"Artist cap {cap} dropped {len(dropped)} tracks")
        return [c for c in selected if id(c) not in dropped]

    def _constrained_shuffle(
        self,
        selected: List[ScoredCandidate],
        artist_cap: Optional[int] = None
    ) -> List[ScoredCandidate]:
        """Seeded shuffle with no two consecutive tracks by the same artist."""
        rng = random.Random(self.seed)
        cap = artist_cap if artist_cap is not None else max(1, math.ceil(len(selected) / 4))
        remaining = self._apply_artist_cap(selected, cap)
        rng.shuffle(remaining)

        result: List[ScoredCandidate] = []
        while remaining:
            last = artist_key(result[-1].track) if result else None
            counts = Counter(artist_key(c.track) for c in remaining)
            busiest, busiest_count = counts.most_common(1)[0]

            # An artist holding more than half of what is left must go now or never fit
            if busiest != last and busiest_count * 2 > len(remaining):
                index = next(i for i, c in enumerate(remaining) if artist_key(c.track) == busiest)
            else:
                index = next((i for i, c in enumerate(remaining) if artist_key(c.track) != last), None)
                if index is None:
                    logger.warning(f"Dropping {len(remaining)} tracks that cannot be spaced apart")
                    break

            result.append(remaining.pop(index))

        return result
