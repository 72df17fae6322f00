"""
Track matching utilities for cross-provider deduplication.
Decides when two candidates are the same recording and merges their provider links.
"""

import re
import unicodedata
from typing import Dict, List, Optional, Tuple
from config.settings import DedupPolicy
from mixtape.models import Track

class TrackMatcher:
    """Normalization and duplicate detection for track titles and artists."""

    def __init__(self, policy: Optional[DedupPolicy] = None):
        self.policy = policy or DedupPolicy()
        self.featuring_patterns = [
            r'\bfeat\.?\s+',
            r'\bft\.?\s+',
            r'\bfeaturing\s+',
            r'\s+x\s+',
            r'\s*&\s*',
            r'\s*,\s*'
        ]

    def normalize_string(self, text: str) -> str:
        """Lowercase, strip accents and punctuation, collapse whitespace."""
        if not text:
            return ""

        text = text.lower()

        # Normalize Unicode characters
        text = unicodedata.normalize('NFD', text)
        text = ''.join(c for c in text if unicodedata.category(c) != 'Mn')

        text = re.sub(r'[^\w\s]', ' ', text)
        text = re.sub(r'\s+', ' ', text.strip())

        return text

    def normalize_title(self, title: str) -> str:
        return self.normalize_string(title)

    def normalize_artist(self, artist: str) -> str:
        """Normalize to the primary artist, dropping featured acts."""
        if not artist:
            return ""

        primary = artist.lower()
        for pattern in self.featuring_patterns:
            match = re.search(pattern, primary)
            if match and match.start() > 0:
                primary = primary[:match.start()]

        return self.normalize_string(primary)

    def levenshtein_distance(self, s1: str, s2: str) -> int:
        """Calculate Levenshtein distance between two strings."""
        if len(s1) < len(s2):
            s1, s2 = s2, s1

        if not s2:
            return len(s1)

        previous_row = list(range(len(s2) + 1))
        for i, c1 in enumerate(s1):
            current_row = [i + 1]
            for j, c2 in enumerate(s2):
                current_row.append(min(
                    previous_row[j + 1] + 1,
                    current_row[j] + 1,
                    previous_row[j] + (c1 != c2)
                ))
            previous_row = current_row

        return previous_row[-1]

    def title_similarity(self, title1: str, title2: str) -> float:
        """Edit-distance ratio of the normalized titles (1.0 = identical)."""
        norm1 = self.normalize_title(title1)
        norm2 = self.normalize_title(title2)
        if not norm1 and not norm2:
            return 1.0
        if not norm1 or not norm2:
            return 0.0
        return 1.0 - self.levenshtein_distance(norm1, norm2) / max(len(norm1), len(norm2))

    def _key(self, track: Track) -> Tuple[str, str]:
        return self.normalize_title(track.name), self.normalize_artist(track.artist)

    def _matches(self, key1: Tuple[str, str], key2: Tuple[str, str], duration1: int, duration2: int) -> bool:
        if key1 == key2:
            return True

        if abs(duration1 - duration2) > self.policy.duration_delta_ms:
            return False

        title1, title2 = key1[0], key2[0]
        if not title1 or not title2:
            return False
        ratio = 1.0 - self.levenshtein_distance(title1, title2) / max(len(title1), len(title2))
        return ratio >= self.policy.title_similarity

    def is_duplicate(self, track1: Track, track2: Track) -> bool:
        """
        Same recording when normalized title and primary artist match, or when
        durations agree within the policy delta and titles are near-identical.
        """
        return self._matches(self._key(track1), self._key(track2), track1.duration_ms, track2.duration_ms)

    def deduplicate(self, tracks: List[Track]) -> List[Track]:
        """
        Collapse duplicate candidates into one canonical track each.

        Duplicate groups are closed transitively, so running the result through
        again changes nothing. The canonical instance is the first one carrying
        audio features, else the first seen; it absorbs every other member's
        provider ids and links. Output keeps first-seen order of each group.
        """
        keys = [self._key(track) for track in tracks]
        parent = list(range(len(tracks)))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for i in range(len(tracks)):
            for j in range(i + 1, len(tracks)):
                root_i, root_j = find(i), find(j)
                if root_i == root_j:
                    continue
                if self._matches(keys[i], keys[j], tracks[i].duration_ms, tracks[j].duration_ms):
                    parent[max(root_i, root_j)] = min(root_i, root_j)

        groups: Dict[int, List[Track]] = {}
        for index, track in enumerate(tracks):
            groups.setdefault(find(index), []).append(track)

        result = []
        for root in sorted(groups):
            members = groups[root]
            if len(members) == 1:
                result.append(members[0])
                continue

            canonical = next((t for t in members if t.has_audio_features), members[0])
            merged = canonical
            for member in members:
                if member is not canonical:
                    merged = merged.merged_with(member)
            result.append(merged)

        return result
