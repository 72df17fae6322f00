"""Clients for the streaming providers and the language model."""

from .base_client import ProviderClient
from .spotify_client import SpotifyClient
from .soundcloud_client import SoundCloudClient
from .gateway import ProviderGateway
from .openai_client import LanguageModel, ModelError, OpenAIClient

__all__ = [
    'ProviderClient',
    'SpotifyClient',
    'SoundCloudClient',
    'ProviderGateway',
    'LanguageModel',
    'ModelError',
    'OpenAIClient'
]
