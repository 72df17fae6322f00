"""
Mixtape service: wires the components together and runs one synthesis turn.
"""

import logging
from typing import Dict, Optional
from config.settings import Settings
from mixtape.api.gateway import ProviderGateway
from mixtape.api.openai_client import LanguageModel, OpenAIClient
from mixtape.api.soundcloud_client import SoundCloudClient
from mixtape.api.spotify_client import SpotifyClient
from mixtape.exceptions import ProviderUnavailable
from mixtape.models import Connection, Message, Provider
from mixtape.services.intent_parser import IntentParser
from mixtape.services.mixing_engine import MixingEngine
from mixtape.services.playlist_exporter import PlaylistExporter
from mixtape.services.profile_aggregator import ProfileAggregator
from mixtape.services.sequencer import Sequencer
from mixtape.services.session_ledger import SessionLedger
from mixtape.services.track_selector import TrackSelector
from mixtape.storage import (
    ConnectionRepository,
    MessageRepository,
    PlaylistRepository,
    ProfileRepository,
    RecordStore
)
from mixtape.utils.similarity_calculator import SimilarityCalculator
from mixtape.utils.track_matcher import TrackMatcher

logger = logging.getLogger(__name__)

class MixtapeService:
    """Entry point for a prompt-to-playlist turn."""

    def __init__(
        self,
        gateway: ProviderGateway,
        aggregator: ProfileAggregator,
        parser: IntentParser,
        engine: MixingEngine,
        ledger: SessionLedger,
        exporter: Optional[PlaylistExporter] = None,
        model: Optional[LanguageModel] = None
    ):
        self.gateway = gateway
        self.aggregator = aggregator
        self.parser = parser
        self.engine = engine
        self.ledger = ledger
        self.exporter = exporter or PlaylistExporter(gateway, ledger)
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings, store: RecordStore) -> "MixtapeService":
        """Build the full component graph from application settings."""
        clients = {}
        if settings.SPOTIFY_CLIENT_ID and settings.SPOTIFY_CLIENT_SECRET:
            clients[Provider.SPOTIFY] = SpotifyClient(
                client_id=settings.SPOTIFY_CLIENT_ID,
                client_secret=settings.SPOTIFY_CLIENT_SECRET,
                config=settings.spotify,
                redirect_uri=settings.SPOTIFY_REDIRECT_URI,
                gateway_config=settings.gateway,
                store=store,
                search_ttl=settings.cache.search_ttl
            )
        if settings.SOUNDCLOUD_CLIENT_ID:
            clients[Provider.SOUNDCLOUD] = SoundCloudClient(
                client_id=settings.SOUNDCLOUD_CLIENT_ID,
                client_secret=settings.SOUNDCLOUD_CLIENT_SECRET,
                config=settings.soundcloud,
                redirect_uri=settings.SOUNDCLOUD_REDIRECT_URI,
                gateway_config=settings.gateway,
                store=store,
                search_ttl=settings.cache.search_ttl
            )
        if not clients:
            logger.warning("No provider credentials configured; synthesis will fail")

        model = None
        if settings.OPENAI_API_KEY:
            model = OpenAIClient(
                api_key=settings.OPENAI_API_KEY,
                model=settings.OPENAI_MODEL,
                timeout=settings.openai.timeout
            )
        else:
            logger.warning("OPENAI_API_KEY not set; every request will use the default intent")

        gateway = ProviderGateway(clients, ConnectionRepository(store), settings.gateway)
        ledger = SessionLedger(MessageRepository(store), PlaylistRepository(store))
        engine = MixingEngine(
            gateway,
            matcher=TrackMatcher(settings.dedup),
            calculator=SimilarityCalculator(settings.scoring),
            selector=TrackSelector(settings.selection, max_tracks=settings.intent.max_track_count),
            sequencer=Sequencer(
                settings.selection.max_consecutive_same_artist,
                seed=settings.selection.shuffle_seed
            ),
            policy=settings.selection,
            model=model,
            describe_timeout=settings.intent.model_timeout_seconds
        )
        return cls(
            gateway=gateway,
            aggregator=ProfileAggregator(
                gateway,
                ProfileRepository(store),
                top_limit=settings.profile["top_limit"],
                max_genres=settings.profile["max_genres"]
            ),
            parser=IntentParser(model, settings.intent),
            engine=engine,
            ledger=ledger,
            model=model
        )

    async def close(self):
        await self.gateway.close()
        if isinstance(self.model, OpenAIClient):
            await self.model.close()

    async def connected_providers(self, user_id: str) -> Dict[Provider, Connection]:
        connections = await self.gateway.connections.list_for_user(user_id)
        return {c.provider: c for c in connections if c.is_valid}

    async def connect(self, user_id: str, provider: Provider, code: str, state: str) -> Connection:
        """Link a provider from its authorization callback, then rebuild the profile."""
        connection = await self.gateway.connect(user_id, provider, code, state)
        try:
            await self.aggregator.build_profile(user_id)
        except ProviderUnavailable as e:
            logger.warning(f"Profile rebuild after connecting {provider.value} failed: {e}")
        return connection

    async def synthesize(self, user_id: str, prompt: str, conversation_id: str) -> Message:
        """
        Run one turn: profile, history, intent, synthesis, then persistence.

        The playlist and both messages are written only after synthesis
        finishes, so a cancelled or failed turn leaves the ledger untouched.
        """
        connections = await self.connected_providers(user_id)

        try:
            profile = await self.aggregator.get_profile(user_id)
        except ProviderUnavailable as e:
            logger.warning(f"Synthesizing without a profile for {user_id}: {e}")
            profile = None

        history = await self.ledger.get_history(conversation_id)
        intent = await self.parser.parse_intent_or_default(prompt, profile, history, list(connections))
        logger.info(f"Intent for {user_id}: {intent.to_dict()}")

        playlist = await self.engine.synthesize(intent, profile, connections, user_id, prompt)

        reply = playlist.explanation or playlist.description
        return await self.ledger.record_turn(conversation_id, prompt, playlist, reply)
