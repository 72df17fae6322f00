"""
Language model client used for intent extraction and playlist descriptions.

Both calls force a single function call so the reply is always structured
arguments rather than free text.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from openai import AsyncOpenAI, OpenAIError
from mixtape.models import IntentExtraction, MixtapeIntent, PlaylistDescription, Track

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You turn a listener's request into a mixtape plan.

Always call the create_mixtape function. Use the listener's taste profile to
pick search queries that fit their library, and the conversation history to
resolve follow-ups such as "make it longer" or "more upbeat".

Durations are in seconds. Only set targetTrackCount when the listener asks for
a number of songs. Set includeSpotify or includeSoundcloud to false only when
the listener excludes that service."""

DESCRIBE_PROMPT = """You write the blurb for a finished mixtape.

Always call the describe_playlist function with a one or two sentence
description and a short explanation of why the tracks fit the request."""

class ModelError(Exception):
    """Raised when the language model gives no usable function call."""
    pass

class LanguageModel(ABC):
    """Capability the intent parser and mixtape service depend on."""

    @abstractmethod
    async def extract_intent(
        self,
        prompt: str,
        profile_summary: Dict[str, Any],
        history: List[Dict[str, str]]
    ) -> Dict[str, Any]:
        """Raw ``create_mixtape`` arguments for a request."""
        pass

    @abstractmethod
    async def describe_playlist(self, intent: MixtapeIntent, tracks: List[Track]) -> Dict[str, Any]:
        """Raw ``describe_playlist`` arguments for a final selection."""
        pass

class OpenAIClient(LanguageModel):
    """OpenAI Chat Completions with forced tool calls."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 15.0,
        max_retries: int = 2,
        client: Optional[AsyncOpenAI] = None
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Chat model name
            timeout: Per-request timeout in seconds
            max_retries: SDK-level retries on transient errors
            client: Preconfigured SDK client (tests)
        """
        if not api_key and client is None:
            raise ValueError("OPENAI_API_KEY must be provided")
        self.model = model
        self.timeout = timeout
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)

    async def close(self):
        await self.client.close()

    async def _call_function(self, messages: List[Dict[str, str]], schema: Dict[str, Any]) -> Dict[str, Any]:
        name = schema["name"]
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=[{"type": "function", "function": schema}],
                tool_choice={"type": "function", "function": {"name": name}},
                temperature=0.7
            )
        except OpenAIError as e:
            logger.warning(f"Language model call {name} failed: {e}")
            raise ModelError(f"{name} call failed: {e}") from e

        if not completion.choices:
            raise ModelError(f"{name} returned no choices")

        tool_calls = completion.choices[0].message.tool_calls or []
        for tool_call in tool_calls:
            if tool_call.function.name != name:
                continue
            try:
                arguments = json.loads(tool_call.function.arguments or "{}")
            except json.JSONDecodeError as e:
                raise ModelError(f"{name} returned malformed arguments") from e
            if not isinstance(arguments, dict):
                raise ModelError(f"{name} returned non-object arguments")
            return arguments

        raise ModelError(f"{name} was not called")

    async def extract_intent(
        self,
        prompt: str,
        profile_summary: Dict[str, Any],
        history: List[Dict[str, str]]
    ) -> Dict[str, Any]:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "system", "content": f"Listener taste profile: {json.dumps(profile_summary)}"}
        ]
        messages.extend(history)
        messages.append({"role": "user", "content": prompt})

        return await self._call_function(messages, IntentExtraction.tool_schema())

    async def describe_playlist(self, intent: MixtapeIntent, tracks: List[Track]) -> Dict[str, Any]:
        track_lines = "\n".join(f"- {track.display_name}" for track in tracks[:50])
        request = {
            "mood_tags": intent.mood_tags,
            "energy_profile": intent.energy_profile.value,
            "target_minutes": round(intent.target_duration_seconds / 60),
            "requested_name": intent.name
        }
        messages = [
            {"role": "system", "content": DESCRIBE_PROMPT},
            {"role": "user", "content": f"Request: {json.dumps(request)}\nTracks:\n{track_lines}"}
        ]
        return await self._call_function(messages, PlaylistDescription.tool_schema())
