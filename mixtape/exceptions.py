"""
Domain errors surfaced by the synthesis core.

Transport-level errors stay inside ``mixtape.api``; only these types cross the
Gateway boundary.
"""

from typing import Optional
from mixtape.models.provider import Provider

class MixtapeError(Exception):
    """Base exception for the synthesis core."""
    pass

class ReauthRequired(MixtapeError):
    """A token refresh failed permanently; the user must re-link the provider."""

    def __init__(self, provider: Provider, message: Optional[str] = None):
        self.provider = provider
        super().__init__(message or f"{provider.value} connection needs re-authorization")

class ProviderUnavailable(MixtapeError):
    """Transient remote failure after retries, scoped to one provider (or all when None)."""

    def __init__(self, provider: Optional[Provider] = None, message: Optional[str] = None):
        self.provider = provider
        scope = provider.value if provider else "all providers"
        super().__init__(message or f"{scope} unavailable")

class IntentUnparseable(MixtapeError):
    """The language model gave no usable output. Recovered with defaults."""
    pass

class SynthesisExhausted(MixtapeError):
    """No candidate resolved for the request."""

    def __init__(self, requested: int = 0, available: int = 0):
        self.requested = requested
        self.available = available
        super().__init__(f"Resolved {available} of {requested} requested tracks")

class RecordNotFound(MixtapeError):
    """A requested profile, playlist or connection does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")
