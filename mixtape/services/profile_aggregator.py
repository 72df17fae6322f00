"""
Taste profile aggregation across a listener's connected providers.
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from mixtape.api.gateway import ProviderGateway
from mixtape.exceptions import ProviderUnavailable, ReauthRequired
from mixtape.models import ArtistRef, AudioFeatures, Connection, MusicProfile, Provider, Track
from mixtape.storage.repositories import ProfileRepository

logger = logging.getLogger(__name__)

class ProfileAggregator:
    """Builds and caches a MusicProfile from every connected provider."""

    def __init__(
        self,
        gateway: ProviderGateway,
        profiles: ProfileRepository,
        top_limit: int = 50,
        max_genres: int = 20
    ):
        self.gateway = gateway
        self.profiles = profiles
        self.top_limit = top_limit
        self.max_genres = max_genres

    async def get_profile(self, user_id: str, build_if_missing: bool = True) -> Optional[MusicProfile]:
        """Stored profile, built on first use when allowed."""
        profile = await self.profiles.get(user_id)
        if profile is None and build_if_missing:
            profile = await self.build_profile(user_id)
        return profile

    async def build_profile(self, user_id: str) -> MusicProfile:
        """
        Rebuild the profile from scratch and persist it.

        Providers that are unconnected, invalid or failing are left out. Raises
        ProviderUnavailable only when nothing was collected and at least one
        provider failed.
        """
        connections = [c for c in await self.gateway.connections.list_for_user(user_id) if c.is_valid]
        logger.info(f"Building profile for user {user_id} from {len(connections)} connections")

        results = await asyncio.gather(
            *(self._collect(connection) for connection in connections),
            return_exceptions=True
        )

        top_artists: List[ArtistRef] = []
        top_tracks: List[Track] = []
        sources: List[Provider] = []
        failures: Dict[Provider, Exception] = {}

        for connection, result in zip(connections, results):
            if isinstance(result, (ReauthRequired, ProviderUnavailable)):
                logger.warning(f"Profile source {connection.provider.value} skipped: {result}")
                failures[connection.provider] = result
                continue
            if isinstance(result, BaseException):
                raise result

            artists, tracks = result
            top_artists.extend(artists)
            top_tracks.extend(tracks)
            if artists or tracks:
                sources.append(connection.provider)

        if not sources and failures:
            raise ProviderUnavailable(None, "No provider could contribute to the profile")

        features = [track.audio_features for track in top_tracks if track.has_audio_features]
        profile = MusicProfile(
            user_id=user_id,
            top_artists=top_artists,
            top_tracks=top_tracks,
            top_genres=self.rank_genres(top_artists, top_tracks, self.max_genres),
            audio_feature_averages=AudioFeatures.average(features),
            last_analyzed=datetime.now(timezone.utc),
            sources=sources
        )

        await self.profiles.save(profile)
        logger.info(
            f"Profile for {user_id}: {len(top_artists)} artists, {len(top_tracks)} tracks, "
            f"{len(profile.top_genres)} genres from {[p.value for p in sources]}"
        )
        return profile

    async def _collect(self, connection: Connection) -> Tuple[List[ArtistRef], List[Track]]:
        provider = connection.provider
        artists, tracks = await self.gateway.top_artists_and_tracks(
            connection.user_id, provider, limit=self.top_limit
        )

        track_ids = [track.id for track in tracks]
        if track_ids:
            try:
                features = await self.gateway.get_audio_features(provider, track_ids, connection=connection)
            except (ProviderUnavailable, ReauthRequired) as e:
                logger.warning(f"Audio features unavailable from {provider.value}: {e}")
                features = {}
            tracks = [track.with_audio_features(features.get(track.id)) for track in tracks]

        return artists, tracks

    @staticmethod
    def rank_genres(artists: List[ArtistRef], tracks: List[Track], limit: int = 20) -> List[str]:
        """
        Genres ranked by frequency across artists and tracks.
        Ties keep first-seen order.
        """
        counts: Counter = Counter()
        first_seen: Dict[str, int] = {}
        for genres in [a.genres for a in artists] + [t.genres for t in tracks]:
            for genre in genres:
                genre = genre.strip().lower()
                if not genre:
                    continue
                counts[genre] += 1
                first_seen.setdefault(genre, len(first_seen))

        ranked = sorted(counts, key=lambda g: (-counts[g], first_seen[g]))
        return ranked[:limit]
