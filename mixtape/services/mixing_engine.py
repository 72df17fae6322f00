"""
Resolution and mixing engine.

Fans search queries out to every weighted provider, deduplicates the pooled
candidates, scores them against the listener's profile, selects under the
request's constraints, orders them along the energy profile and asks the
language model to describe the result.
"""

import asyncio
import logging
from collections import defaultdict
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple
from pydantic import ValidationError
from config.settings import SelectionPolicy
from mixtape.api.gateway import ProviderGateway
from mixtape.api.openai_client import LanguageModel, ModelError
from mixtape.exceptions import ProviderUnavailable, ReauthRequired, SynthesisExhausted
from mixtape.models import (
    Connection,
    EnergyProfile,
    MixtapeIntent,
    MusicProfile,
    Playlist,
    PlaylistDescription,
    Provider,
    Track
)
from mixtape.services.sequencer import Sequencer
from mixtape.services.track_selector import ScoredCandidate, TrackSelector
from mixtape.utils.similarity_calculator import SimilarityCalculator
from mixtape.utils.track_matcher import TrackMatcher

logger = logging.getLogger(__name__)

class SynthesisState(str, Enum):
    QUERYING = "querying"
    DEDUPLICATING = "deduplicating"
    SCORING = "scoring"
    SELECTING = "selecting"
    SEQUENCING = "sequencing"
    DONE = "done"
    DEGRADED = "degraded"
    FAILED = "failed"

# Tracks found by a query, with the mood tags that query carried
ProviderHits = List[Tuple[Track, Set[str]]]

class MixingEngine:
    """Builds one playlist per request. Holds no per-request state between calls."""

    def __init__(
        self,
        gateway: ProviderGateway,
        matcher: Optional[TrackMatcher] = None,
        calculator: Optional[SimilarityCalculator] = None,
        selector: Optional[TrackSelector] = None,
        sequencer: Optional[Sequencer] = None,
        policy: Optional[SelectionPolicy] = None,
        model: Optional[LanguageModel] = None,
        describe_timeout: float = 15.0
    ):
        self.gateway = gateway
        self.policy = policy or SelectionPolicy()
        self.matcher = matcher or TrackMatcher()
        self.calculator = calculator or SimilarityCalculator()
        self.selector = selector or TrackSelector(self.policy)
        self.sequencer = sequencer or Sequencer(
            self.policy.max_consecutive_same_artist, seed=self.policy.shuffle_seed
        )
        self.model = model
        self.describe_timeout = describe_timeout

    def _enter(self, state: SynthesisState, user_id: str, detail: str = ""):
        logger.info(f"Synthesis for {user_id}: {state.value}{' - ' + detail if detail else ''}")

    async def synthesize(
        self,
        intent: MixtapeIntent,
        profile: Optional[MusicProfile],
        connections: Dict[Provider, Connection],
        user_id: str,
        prompt: str = ""
    ) -> Playlist:
        """
        Produce an ordered, described playlist. Nothing is persisted here.

        Raises:
            ReauthRequired: every weighted provider failed and one needs re-linking
            ProviderUnavailable: every weighted provider failed
            SynthesisExhausted: no candidate could be selected
        """
        weighted = intent.weighted_providers
        if not weighted:
            self._enter(SynthesisState.FAILED, user_id, "no weighted provider")
            raise ProviderUnavailable(None, "No connected provider to search")

        queries = self.build_queries(intent, profile)
        self._enter(SynthesisState.QUERYING, user_id, f"{len(queries)} queries x {[p.value for p in weighted]}")

        results = await asyncio.gather(
            *(self._query_provider(p, queries, connections.get(p)) for p in weighted),
            return_exceptions=True
        )

        hits: ProviderHits = []
        failures: Dict[Provider, Exception] = {}
        for provider, result in zip(weighted, results):
            if isinstance(result, (ReauthRequired, ProviderUnavailable)):
                logger.warning(f"Provider {provider.value} failed during synthesis: {result}")
                failures[provider] = result
                continue
            if isinstance(result, BaseException):
                raise result
            hits.extend(result)

        if len(failures) == len(weighted):
            self._enter(SynthesisState.FAILED, user_id, "all weighted providers failed")
            reauth = next((e for e in failures.values() if isinstance(e, ReauthRequired)), None)
            if reauth is not None:
                raise reauth
            raise ProviderUnavailable(None, "All weighted providers failed")

        self._enter(SynthesisState.DEDUPLICATING, user_id, f"{len(hits)} raw candidates")
        tags_by_id: Dict[Tuple[str, str], Set[str]] = defaultdict(set)
        for track, tags in hits:
            for provider_name, native_id in track.provider_ids.items():
                tags_by_id[(provider_name, native_id)].update(tags)
        candidates = self.matcher.deduplicate([track for track, _ in hits])

        if not candidates:
            self._enter(SynthesisState.FAILED, user_id, "no candidates")
            raise SynthesisExhausted(requested=intent.target_track_count, available=0)

        self._enter(SynthesisState.SCORING, user_id, f"{len(candidates)} unique candidates")
        scored = self.score_candidates(candidates, intent, profile, tags_by_id)

        self._enter(SynthesisState.SELECTING, user_id)
        selection = self.selector.select(scored, intent)
        if not selection.selected:
            self._enter(SynthesisState.FAILED, user_id, "no admissible candidates")
            raise SynthesisExhausted(requested=intent.target_track_count, available=len(candidates))

        self._enter(SynthesisState.SEQUENCING, user_id, f"{len(selection.selected)} selected")
        fallback_energy = profile.audio_feature_averages.energy if profile else None
        ordered = self.sequencer.sequence(
            selection.selected, intent.energy_profile, fallback_energy,
            artist_cap=self.selector.artist_cap(intent)
        )
        tracks = [candidate.track for candidate in ordered]
        shorter = self.selector.falls_short(tracks, intent)

        name = intent.name or self.fallback_name(intent)
        description, explanation = await self._describe(intent, tracks)

        playlist = Playlist(
            id=Playlist.new_id(),
            user_id=user_id,
            name=name,
            description=description,
            explanation=explanation,
            tracks=tracks,
            prompt=prompt,
            mood_tags=list(intent.mood_tags),
            energy_profile=intent.energy_profile,
            target_duration_seconds=intent.target_duration_seconds,
            degraded=bool(failures),
            failed_providers=[p for p in weighted if p in failures],
            shorter_than_requested=shorter
        )

        final_state = SynthesisState.DEGRADED if failures else SynthesisState.DONE
        self._enter(
            final_state, user_id,
            f"{playlist.track_count} tracks, {playlist.total_duration_formatted}"
        )
        return playlist

    def build_queries(self, intent: MixtapeIntent, profile: Optional[MusicProfile]) -> List[Tuple[str, Set[str]]]:
        """
        Search queries with the mood tags each one carries.

        Model-suggested queries come first, then every mood tag paired with a
        sample of top genres and artists, then the bare tags. Capped per provider.
        """
        sample = self.policy.seed_sample_size
        genres = profile.top_genres[:sample] if profile else []
        artists = [a.name for a in profile.top_artists[:sample]] if profile else []
        tags = list(intent.mood_tags)

        raw: List[str] = list(intent.search_queries)
        for tag in tags:
            raw.extend(f"{tag} {genre}" for genre in genres)
        for tag in tags:
            raw.extend(f"{tag} {artist}" for artist in artists)
        raw.extend(tags)
        if not raw:
            raw = genres or artists or ["popular"]

        queries: List[Tuple[str, Set[str]]] = []
        seen = set()
        for query in raw:
            key = query.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            carried = {tag for tag in tags if tag in key}
            queries.append((query.strip(), carried))
            if len(queries) >= self.policy.max_queries_per_provider:
                break
        return queries

    async def _query_provider(
        self,
        provider: Provider,
        queries: List[Tuple[str, Set[str]]],
        connection: Optional[Connection]
    ) -> ProviderHits:
        """
        Run every query against one provider.

        The provider fails only when every query failed; audio-feature
        enrichment failing just leaves features absent.
        """
        results = await asyncio.gather(
            *(self.gateway.search(provider, query, self.policy.search_limit, connection=connection)
              for query, _ in queries),
            return_exceptions=True
        )

        hits: ProviderHits = []
        errors = []
        for (query, carried), result in zip(queries, results):
            if isinstance(result, (ReauthRequired, ProviderUnavailable)):
                errors.append(result)
                continue
            if isinstance(result, BaseException):
                raise result
            hits.extend((track, carried) for track in result)

        if errors and len(errors) == len(results):
            reauth = next((e for e in errors if isinstance(e, ReauthRequired)), None)
            raise reauth or errors[0]
        if errors:
            logger.warning(f"{len(errors)} of {len(results)} {provider.value} queries failed")

        track_ids = list(dict.fromkeys(track.id for track, _ in hits if not track.has_audio_features))
        if track_ids:
            try:
                features = await self.gateway.get_audio_features(provider, track_ids, connection=connection)
            except (ProviderUnavailable, ReauthRequired) as e:
                logger.warning(f"Audio features unavailable from {provider.value}: {e}")
                features = {}
            if features:
                hits = [
                    (track.with_audio_features(features[track.id]) if track.id in features else track, carried)
                    for track, carried in hits
                ]

        logger.debug(f"{provider.value} returned {len(hits)} candidates")
        return hits

    def score_candidates(
        self,
        candidates: List[Track],
        intent: MixtapeIntent,
        profile: Optional[MusicProfile],
        tags_by_id: Dict[Tuple[str, str], Set[str]]
    ) -> List[ScoredCandidate]:
        reference = profile.audio_feature_averages if profile else None
        familiar_ids: Set[str] = set()
        if profile:
            for track in profile.top_tracks:
                familiar_ids.update(track.provider_ids.values())
                familiar_ids.add(track.id)

        scored = []
        for track in candidates:
            matched: Set[str] = set()
            for provider_name, native_id in track.provider_ids.items():
                matched |= tags_by_id.get((provider_name, native_id), set())
            score = self.calculator.score(
                track, reference, familiar_ids, intent.discovery_ratio, intent.mood_tags, matched
            )
            scored.append(ScoredCandidate(track=track, score=score))
        return scored

    async def _describe(self, intent: MixtapeIntent, tracks: List[Track]) -> Tuple[str, Optional[str]]:
        """Model-written description, or a deterministic one when the model fails."""
        if self.model is not None:
            try:
                arguments = await asyncio.wait_for(
                    self.model.describe_playlist(intent, tracks), timeout=self.describe_timeout
                )
                described = PlaylistDescription.model_validate(arguments)
                return described.description, described.explanation or intent.explanation
            except (asyncio.TimeoutError, ModelError, ValidationError) as e:
                logger.warning(f"Playlist description fell back to template: {e}")

        return self.fallback_description(intent, tracks), intent.explanation

    @staticmethod
    def fallback_name(intent: MixtapeIntent) -> str:
        parts = [tag.title() for tag in intent.mood_tags[:2]]
        if intent.energy_profile == EnergyProfile.ASCENDING:
            parts.append("Build-Up")
        elif intent.energy_profile == EnergyProfile.DESCENDING:
            parts.append("Wind-Down")
        parts.append("Mix")
        return " ".join(parts)

    @staticmethod
    def fallback_description(intent: MixtapeIntent, tracks: List[Track]) -> str:
        minutes = round(sum(track.duration_ms for track in tracks) / 60000)
        desc_parts = [f"{len(tracks)} tracks, about {minutes} minutes"]
        if intent.mood_tags:
            desc_parts.append(f"Mood: {', '.join(intent.mood_tags)}")
        desc_parts.append(f"Energy: {intent.energy_profile.value}")
        return " | ".join(desc_parts)
