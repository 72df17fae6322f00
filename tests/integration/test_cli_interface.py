#!/usr/bin/env python3
"""
Integration tests for the CLI interface.
Tests argument parsing, exit codes and the printed summaries.
"""

import pytest
import json
from unittest.mock import AsyncMock, MagicMock, patch

import main
from mixtape.exceptions import ProviderUnavailable, ReauthRequired
from mixtape.models import Message, MessageRole, Playlist, Provider

def mock_service():
    store = MagicMock()
    store.close = AsyncMock()
    service = MagicMock()
    service.close = AsyncMock()
    service.synthesize = AsyncMock()
    service.aggregator.get_profile = AsyncMock()
    service.aggregator.build_profile = AsyncMock()
    return store, service

class TestCLIInterface:
    """Integration tests for the command line interface."""

    def setup_method(self):
        self.store, self.service = mock_service()
        self.opener = patch("main.open_service", AsyncMock(return_value=(self.store, self.service)))
        self.opener.start()

    def teardown_method(self):
        self.opener.stop()

    def run(self, *argv):
        with patch("sys.argv", ["main.py", *argv]):
            return main.main()

    def make_message(self, make_track):
        tracks = [make_track(f"t{i}", artist=f"artist{i}", energy=0.1 * i) for i in range(3)]
        playlist = Playlist(
            id="p1", user_id="u1", name="Night Drive", description="Slow and warm",
            tracks=tracks, prompt="night drive", mood_tags=["night"],
            degraded=True, failed_providers=[Provider.SOUNDCLOUD]
        )
        return Message.create("cli", MessageRole.ASSISTANT, "Here you go", playlist=playlist)

    def test_synthesize_prints_summary(self, capsys, make_track):
        self.service.synthesize.return_value = self.make_message(make_track)

        exit_code = self.run("synthesize", "--user", "u1", "--prompt", "night drive")

        assert exit_code == 0
        self.service.synthesize.assert_awaited_once_with("u1", "night drive", "cli")
        output = capsys.readouterr().out
        assert "Night Drive" in output
        assert "Degraded: soundcloud" in output
        assert "Song t1 - artist1" in output
        self.service.close.assert_awaited_once()
        self.store.close.assert_awaited_once()

    def test_synthesize_json(self, capsys, make_track):
        self.service.synthesize.return_value = self.make_message(make_track)

        self.run("synthesize", "--user", "u1", "--prompt", "night drive", "--json")

        output = capsys.readouterr().out
        payload = json.loads(output[output.index("{"):])
        assert payload["playlist"]["name"] == "Night Drive"

    @pytest.mark.parametrize("error,expected", [
        (ReauthRequired(Provider.SPOTIFY), 2),
        (ProviderUnavailable(None), 1),
    ])
    def test_synthesize_exit_codes(self, error, expected):
        self.service.synthesize.side_effect = error

        assert self.run("synthesize", "--user", "u1", "--prompt", "x") == expected
        self.store.close.assert_awaited_once()

    def test_profile_missing(self, capsys):
        self.service.aggregator.get_profile.return_value = None

        assert self.run("profile", "--user", "u1") == 1
        assert "--refresh" in capsys.readouterr().out

    def test_profile_refresh(self, capsys, sample_profile):
        self.service.aggregator.build_profile.return_value = sample_profile

        assert self.run("profile", "--user", "u1", "--refresh") == 0

        output = capsys.readouterr().out
        assert "Bonobo" in output
        assert "Energy: 0.80" in output

    def test_no_command_prints_help(self):
        assert self.run() == 1

    def test_requires_prompt(self):
        with pytest.raises(SystemExit):
            self.run("synthesize", "--user", "u1")
