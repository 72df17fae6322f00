"""
Intent parsing: turns a free-text request into a defaulted, clamped MixtapeIntent.
"""

import asyncio
import logging
from typing import Dict, List, Optional
from pydantic import ValidationError
from config.settings import IntentDefaults
from mixtape.api.openai_client import LanguageModel, ModelError
from mixtape.exceptions import IntentUnparseable
from mixtape.models import EnergyProfile, IntentExtraction, Message, MixtapeIntent, MusicProfile, Provider

logger = logging.getLogger(__name__)

def _clamp(value, low, high):
    return max(low, min(high, value))

class IntentParser:
    """Delegates language understanding to a model and owns every default."""

    def __init__(self, model: Optional[LanguageModel], defaults: Optional[IntentDefaults] = None):
        self.model = model
        self.defaults = defaults or IntentDefaults()

    async def parse_intent(
        self,
        prompt: str,
        profile: Optional[MusicProfile],
        history: List[Message],
        connected: List[Provider]
    ) -> MixtapeIntent:
        """
        Extract an intent from a prompt.

        Raises:
            IntentUnparseable: model missing, failing, timing out, returning
                arguments that fail validation, or carrying no mood or length signal
        """
        if self.model is None:
            raise IntentUnparseable("No language model configured")

        summary = profile.summary() if profile else {}
        try:
            arguments = await asyncio.wait_for(
                self.model.extract_intent(prompt, summary, self._history_messages(history)),
                timeout=self.defaults.model_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise IntentUnparseable("Language model timed out") from e
        except ModelError as e:
            raise IntentUnparseable(str(e)) from e

        try:
            extraction = IntentExtraction.model_validate(arguments)
        except ValidationError as e:
            raise IntentUnparseable(f"Model output failed validation: {e.error_count()} errors") from e

        if not extraction.has_signal:
            raise IntentUnparseable("Model output carried no mood or length signal")

        return self.build_intent(extraction, profile, connected)

    async def parse_intent_or_default(
        self,
        prompt: str,
        profile: Optional[MusicProfile],
        history: List[Message],
        connected: List[Provider]
    ) -> MixtapeIntent:
        try:
            return await self.parse_intent(prompt, profile, history, connected)
        except IntentUnparseable as e:
            logger.warning(f"Falling back to default intent: {e}")
            return self.default_intent(profile, connected)

    def default_intent(self, profile: Optional[MusicProfile], connected: List[Provider]) -> MixtapeIntent:
        return self.build_intent(IntentExtraction(), profile, connected)

    def build_intent(
        self,
        extraction: IntentExtraction,
        profile: Optional[MusicProfile],
        connected: List[Provider]
    ) -> MixtapeIntent:
        """Apply defaults and clamps to validated model output."""
        d = self.defaults
        seconds_per_track = (profile.mean_track_length_seconds if profile else None) or d.seconds_per_track

        duration = extraction.target_duration
        count = extraction.target_track_count
        count_explicit = False

        if duration is None and count is not None:
            count = int(_clamp(int(count), d.min_track_count, d.max_track_count))
            duration = count * seconds_per_track
            count_explicit = True

        if duration is None:
            duration = d.target_duration_seconds
        duration = int(_clamp(round(duration), d.min_duration_seconds, d.max_duration_seconds))

        if count is None:
            count = round(duration / seconds_per_track)
        count = int(_clamp(int(count), d.min_track_count, d.max_track_count))

        discovery = extraction.discovery_ratio
        if discovery is None:
            discovery = d.discovery_ratio
        discovery = float(_clamp(discovery, 0.0, 1.0))

        return MixtapeIntent(
            mood_tags=extraction.normalized_mood_tags,
            target_duration_seconds=duration,
            target_track_count=count,
            track_count_explicit=count_explicit,
            energy_profile=extraction.energy_profile or EnergyProfile(d.energy_profile),
            source_weights=self.source_weights(extraction, connected),
            discovery_ratio=discovery,
            name=extraction.name,
            description=extraction.description,
            explanation=extraction.explanation,
            search_queries=list(extraction.search_queries)
        )

    def source_weights(self, extraction: IntentExtraction, connected: List[Provider]) -> Dict[Provider, float]:
        """Equal weights over connected providers the request did not exclude."""
        included = {
            Provider.SPOTIFY: extraction.include_spotify is not False,
            Provider.SOUNDCLOUD: extraction.include_soundcloud is not False
        }
        chosen = [p for p in connected if included.get(p, True)]
        if not chosen:
            chosen = list(connected)

        weights = {provider: 0.0 for provider in Provider}
        for provider in chosen:
            weights[provider] = 1.0 / len(chosen)
        return weights

    def _history_messages(self, history: List[Message]) -> List[Dict[str, str]]:
        """Recent turns as chat messages; playlists are referenced by name."""
        messages = []
        for message in history[-self.defaults.history_turns * 2:]:
            content = message.content
            if message.playlist is not None:
                content = f"{content}\n[Playlist: {message.playlist.name}, {message.playlist.track_count} tracks]"
            messages.append({"role": message.role.value, "content": content})
        return messages
