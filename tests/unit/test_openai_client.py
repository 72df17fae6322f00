#!/usr/bin/env python3
"""
Unit tests for the OpenAI language model client.
"""

import json
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
from openai import APIConnectionError

from mixtape.api.openai_client import ModelError, OpenAIClient

def completion(name, arguments):
    tool_call = SimpleNamespace(function=SimpleNamespace(name=name, arguments=arguments))
    message = SimpleNamespace(tool_calls=[tool_call])
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])

class TestOpenAIClient:
    """Unit tests for OpenAIClient."""

    def setup_method(self):
        self.sdk = MagicMock()
        self.sdk.chat.completions.create = AsyncMock()
        self.client = OpenAIClient(api_key="test-key", client=self.sdk)

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            OpenAIClient(api_key="")

    @pytest.mark.asyncio
    async def test_extract_intent_forces_function_call(self):
        self.sdk.chat.completions.create.return_value = completion(
            "create_mixtape", json.dumps({"moodTags": ["chill"], "targetDuration": 1800})
        )

        arguments = await self.client.extract_intent(
            "chill evening", {"top_genres": ["jazz"]}, [{"role": "user", "content": "earlier"}]
        )

        assert arguments == {"moodTags": ["chill"], "targetDuration": 1800}
        kwargs = self.sdk.chat.completions.create.await_args.kwargs
        assert kwargs["tool_choice"] == {"type": "function", "function": {"name": "create_mixtape"}}
        assert kwargs["messages"][-1] == {"role": "user", "content": "chill evening"}
        assert kwargs["messages"][-2] == {"role": "user", "content": "earlier"}

    @pytest.mark.asyncio
    async def test_describe_playlist(self, make_intent, make_track):
        self.sdk.chat.completions.create.return_value = completion(
            "describe_playlist", json.dumps({"description": "Warm", "explanation": "Because"})
        )

        arguments = await self.client.describe_playlist(make_intent(), [make_track("t1")])

        assert arguments["description"] == "Warm"
        prompt = self.sdk.chat.completions.create.await_args.kwargs["messages"][-1]["content"]
        assert "Song t1 - Test Artist" in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        completion("create_mixtape", "{not json"),
        completion("create_mixtape", "[1, 2]"),
        completion("other_function", "{}"),
        SimpleNamespace(choices=[])
    ])
    async def test_unusable_responses_raise_model_error(self, response):
        self.sdk.chat.completions.create.return_value = response

        with pytest.raises(ModelError):
            await self.client.extract_intent("x", {}, [])

    @pytest.mark.asyncio
    async def test_sdk_errors_become_model_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        self.sdk.chat.completions.create.side_effect = APIConnectionError(request=request)

        with pytest.raises(ModelError):
            await self.client.extract_intent("x", {}, [])
