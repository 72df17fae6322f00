#!/usr/bin/env python3
"""
End-to-end synthesis turns through MixtapeService with an in-memory store.
"""

import pytest
import asyncio
from unittest.mock import AsyncMock, MagicMock

from config.settings import SelectionPolicy, Settings
from mixtape.api.openai_client import LanguageModel, OpenAIClient
from mixtape.exceptions import ProviderUnavailable
from mixtape.models import MessageRole, Provider
from mixtape.services.intent_parser import IntentParser
from mixtape.services.mixing_engine import MixingEngine
from mixtape.services.mixtape_service import MixtapeService
from mixtape.services.profile_aggregator import ProfileAggregator
from mixtape.services.session_ledger import SessionLedger

class TestMixtapeService:
    """Integration tests for a full prompt-to-playlist turn."""

    @pytest.fixture
    def model(self):
        model = AsyncMock(spec=LanguageModel)
        model.extract_intent.return_value = {
            "name": "Cloud Walk",
            "moodTags": ["chill"],
            "targetDuration": 1800
        }
        model.describe_playlist.return_value = {"description": "Soft and slow", "explanation": "Mellow picks"}
        return model

    @pytest.fixture
    def service(self, gateway, profiles, messages, playlists, model):
        engine = MixingEngine(gateway, policy=SelectionPolicy(shuffle_seed=3), model=model)
        return MixtapeService(
            gateway=gateway,
            aggregator=ProfileAggregator(gateway, profiles),
            parser=IntentParser(model),
            engine=engine,
            ledger=SessionLedger(messages, playlists),
            model=model
        )

    @pytest.fixture
    async def linked(self, connections, fresh_connection, soundcloud_connection):
        await connections.save(fresh_connection)
        await connections.save(soundcloud_connection)

    @pytest.mark.asyncio
    async def test_turn_is_recorded(self, service, linked, make_track, mock_spotify_client, mock_soundcloud_client):
        mock_spotify_client.search_tracks.side_effect = asyncio.TimeoutError()
        mock_soundcloud_client.search_tracks.return_value = [
            make_track(f"sc{i}", artist=f"producer{i}", source=Provider.SOUNDCLOUD) for i in range(12)
        ]

        message = await service.synthesize("u1", "something chill for a walk", "c1")

        assert message.role == MessageRole.ASSISTANT
        assert message.content == "Mellow picks"
        playlist = message.playlist
        assert playlist.name == "Cloud Walk"
        assert playlist.description == "Soft and slow"
        assert playlist.degraded
        assert playlist.failed_providers == [Provider.SPOTIFY]
        assert playlist.message_id == message.id

        history = await service.ledger.get_history("c1")
        assert [m.role for m in history] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert history[0].content == "something chill for a walk"

        stored = await service.ledger.get_playlist(playlist.id)
        assert [t.id for t in stored.tracks] == [t.id for t in playlist.tracks]

    @pytest.mark.asyncio
    async def test_failed_turn_leaves_ledger_untouched(self, service, linked,
                                                       mock_spotify_client, mock_soundcloud_client):
        mock_spotify_client.search_tracks.side_effect = asyncio.TimeoutError()
        mock_soundcloud_client.search_tracks.side_effect = asyncio.TimeoutError()

        with pytest.raises(ProviderUnavailable):
            await service.synthesize("u1", "anything", "c1")

        assert await service.ledger.get_history("c1") == []

    @pytest.mark.asyncio
    async def test_cancelled_turn_persists_nothing(self, service, linked, store,
                                                   mock_spotify_client, mock_soundcloud_client):
        searching = asyncio.Event()
        aborted = []

        async def never_answers(*args, **kwargs):
            searching.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                aborted.append(True)
                raise

        mock_spotify_client.search_tracks.side_effect = never_answers
        mock_soundcloud_client.search_tracks.side_effect = never_answers

        task = asyncio.create_task(service.synthesize("u1", "late night", "c1"))
        await asyncio.wait_for(searching.wait(), timeout=2.0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert aborted
        assert await service.ledger.get_history("c1") == []
        assert not [key for key in store.memory_records if key.startswith("playlist:")]

    @pytest.mark.asyncio
    async def test_second_turn_sees_history(self, service, linked, model, make_track, mock_soundcloud_client):
        mock_soundcloud_client.search_tracks.return_value = [
            make_track(f"sc{i}", artist=f"producer{i}", source=Provider.SOUNDCLOUD) for i in range(12)
        ]

        await service.synthesize("u1", "first request", "c1")
        await service.synthesize("u1", "make it longer", "c1")

        forwarded = model.extract_intent.await_args.args[2]
        assert [m["role"] for m in forwarded] == ["user", "assistant"]
        assert len(await service.ledger.get_history("c1")) == 4

    @pytest.mark.asyncio
    async def test_connect_links_provider_and_builds_profile(self, service, profiles, make_track,
                                                             mock_soundcloud_client):
        mock_soundcloud_client.authorization_url = MagicMock(
            side_effect=lambda state: f"https://soundcloud.example/connect?state={state}"
        )
        mock_soundcloud_client.exchange_code.return_value = {"access_token": "sc-new"}
        mock_soundcloud_client.get_current_user.return_value = {"id": 77}
        mock_soundcloud_client.get_top_tracks.return_value = [make_track("sc1", source=Provider.SOUNDCLOUD)]
        url = await service.gateway.authorization_url("u1", Provider.SOUNDCLOUD)

        connection = await service.connect("u1", Provider.SOUNDCLOUD, "auth-code", url.split("state=")[1])

        assert connection.provider_user_id == "77"
        assert list(await service.connected_providers("u1")) == [Provider.SOUNDCLOUD]
        profile = await profiles.get("u1")
        assert profile.sources == [Provider.SOUNDCLOUD]

    @pytest.mark.asyncio
    async def test_connected_providers_skip_invalid(self, service, connections, fresh_connection,
                                                    soundcloud_connection):
        await connections.save(fresh_connection.invalidated())
        await connections.save(soundcloud_connection)

        connected = await service.connected_providers("u1")

        assert list(connected) == [Provider.SOUNDCLOUD]

class TestFromSettings:
    """Component wiring from environment-driven settings."""

    @pytest.mark.asyncio
    async def test_builds_configured_clients(self, monkeypatch, store):
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "sp-id")
        monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "sp-secret")
        monkeypatch.setenv("SOUNDCLOUD_CLIENT_ID", "sc-id")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        service = MixtapeService.from_settings(Settings(), store)
        try:
            assert set(service.gateway.clients) == {Provider.SPOTIFY, Provider.SOUNDCLOUD}
            assert isinstance(service.model, OpenAIClient)
            assert service.parser.model is service.model
        finally:
            await service.close()

    @pytest.mark.asyncio
    async def test_no_credentials(self, monkeypatch, store):
        for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SOUNDCLOUD_CLIENT_ID", "OPENAI_API_KEY"):
            monkeypatch.delenv(name, raising=False)

        service = MixtapeService.from_settings(Settings(), store)

        assert service.gateway.clients == {}
        assert service.model is None
        await service.close()
