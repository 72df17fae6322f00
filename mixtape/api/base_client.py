"""
Base provider client providing common functionality for both streaming catalogs.
Includes async HTTP session, backoff on throttling, rate limiting, caching, and error mapping.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
import aiohttp
import backoff
from config.settings import APIConfig, GatewayConfig
from mixtape.models import AudioFeatures, ArtistRef, Provider, Track
from mixtape.storage.record_store import RecordStore
from mixtape.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

class APIError(Exception):
    """Base exception for provider API errors."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

class RateLimitError(APIError):
    """Raised on a throttling (429-class) response."""

    def __init__(self, message: str, status: int = 429, retry_after: Optional[float] = None):
        super().__init__(message, status)
        self.retry_after = retry_after

class AuthenticationError(APIError):
    """Raised when a provider rejects an access token."""
    pass

class TokenRefreshError(APIError):
    """Raised when a token grant fails; ``permanent`` marks an invalid grant."""

    def __init__(self, message: str, status: Optional[int] = None, permanent: bool = False):
        super().__init__(message, status)
        self.permanent = permanent

def retry_after_expo(base: float = 0.5, factor: float = 2.0):
    """
    Exponential wait generator for ``backoff`` that honours Retry-After hints.

    Each wait is ``base * factor ** n`` or the exception's ``retry_after``,
    whichever is larger.
    """
    exc = yield
    n = 0
    while True:
        delay = base * factor ** n
        hint = getattr(exc, "retry_after", None)
        if hint is not None:
            delay = max(delay, hint)
        exc = yield delay
        n += 1

def parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None

class ProviderClient(ABC):
    """Capability interface shared by every streaming provider client."""

    provider: Provider
    token_url: str

    def __init__(
        self,
        config: APIConfig,
        gateway_config: Optional[GatewayConfig] = None,
        store: Optional[RecordStore] = None,
        search_ttl: int = 3600
    ):
        self.config = config
        self.base_url = config.base_url
        self.gateway_config = gateway_config or GatewayConfig()
        self.rate_limiter = RateLimiter(config.rate_limit_per_minute, name=self.provider.value)
        self.store = store
        self.search_ttl = search_ttl
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self):
        """Ensure HTTP session is created."""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self):
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()

    def _auth_headers(self, access_token: Optional[str]) -> Dict[str, str]:
        """Authorization headers for a user or app token."""
        if access_token:
            return {"Authorization": f"Bearer {access_token}"}
        return {}

    def _default_params(self) -> Dict[str, Any]:
        """Query parameters sent with every catalog request."""
        return {}

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _send_once(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """Issue one HTTP request within the provider's rate budget."""
        await self._ensure_session()
        await self.rate_limiter.acquire()

        async with self.session.request(method, url, params=params, json=json, headers=headers) as response:
            if response.status in self.gateway_config.retry_statuses:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if retry_after:
                    self.rate_limiter.pause(retry_after)
                raise RateLimitError(
                    f"{self.provider.value} throttled ({response.status})",
                    status=response.status,
                    retry_after=retry_after
                )

            if response.status == 401:
                raise AuthenticationError(f"{self.provider.value} rejected the access token", status=401)

            if response.status >= 400:
                body = await response.text()
                raise APIError(f"{self.provider.value} API error {response.status}: {body[:200]}", status=response.status)

            if response.status == 204:
                return {}
            return await response.json(content_type=None)

    def _log_backoff(self, details: Dict[str, Any]):
        logger.warning(
            f"{self.provider.value} throttled, retrying in {details['wait']:.2f}s "
            f"(attempt {details['tries']})"
        )

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        access_token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None
    ) -> Any:
        """Make HTTP request with throttling backoff and rate limiting."""
        request_params = self._default_params()
        if params:
            request_params.update(params)

        send = backoff.on_exception(
            retry_after_expo,
            RateLimitError,
            max_tries=self.gateway_config.max_attempts,
            jitter=None,
            on_backoff=self._log_backoff,
            base=self.gateway_config.backoff_base_seconds,
            factor=self.gateway_config.backoff_factor
        )(self._send_once)

        try:
            return await send(
                method,
                self._url(endpoint),
                params=request_params or None,
                json=json,
                headers=self._auth_headers(access_token)
            )
        except aiohttp.ClientError as e:
            logger.error(f"HTTP request failed: {method} {endpoint} - {e}")
            raise APIError(f"Request failed: {e}")

    async def _cached_request(
        self,
        cache_key: str,
        method: str,
        endpoint: str,
        ttl: int = 3600,
        **kwargs
    ) -> Any:
        """Make request with caching support."""
        if self.store:
            cached_result = await self.store.get(cache_key)
            if cached_result is not None:
                return cached_result

        result = await self._make_request(method, endpoint, **kwargs)

        if self.store:
            await self.store.set(cache_key, result, ttl)

        return result

    async def _request_token(
        self,
        data: Dict[str, str],
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST a grant to the provider's token endpoint."""
        await self._ensure_session()
        request_headers = {"Content-Type": "application/x-www-form-urlencoded"}
        if headers:
            request_headers.update(headers)

        try:
            async with self.session.post(self.token_url, data=data, headers=request_headers) as response:
                if response.status in (400, 401):
                    payload = await response.json(content_type=None)
                    error = (payload or {}).get("error", "") if isinstance(payload, dict) else ""
                    permanent = response.status == 401 or error in ("invalid_grant", "invalid_client", "unauthorized_client")
                    raise TokenRefreshError(
                        f"{self.provider.value} token grant rejected: {error or response.status}",
                        status=response.status,
                        permanent=permanent
                    )
                if response.status >= 400:
                    raise TokenRefreshError(
                        f"{self.provider.value} token endpoint error {response.status}",
                        status=response.status
                    )
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            logger.error(f"{self.provider.value} token request failed: {e}")
            raise TokenRefreshError(f"Token request failed: {e}")

    @abstractmethod
    def authorization_url(self, state: Optional[str] = None) -> str:
        """URL the user visits to grant access."""
        pass

    @abstractmethod
    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for a token grant."""
        pass

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Exchange a refresh token for a new token grant."""
        pass

    @abstractmethod
    async def get_current_user(self, access_token: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_top_artists(self, access_token: str, limit: int = 50) -> List[ArtistRef]:
        pass

    @abstractmethod
    async def get_top_tracks(self, access_token: str, limit: int = 50) -> List[Track]:
        pass

    @abstractmethod
    async def search_tracks(self, query: str, limit: int = 20, access_token: Optional[str] = None) -> List[Track]:
        """Search the catalog for tracks."""
        pass

    @abstractmethod
    async def get_audio_features(self, track_ids: List[str], access_token: Optional[str] = None) -> Dict[str, AudioFeatures]:
        """Audio features keyed by track id; empty where the provider has none."""
        pass

    @abstractmethod
    async def create_playlist(
        self,
        access_token: str,
        provider_user_id: Optional[str],
        name: str,
        description: str = ""
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def add_tracks_to_playlist(self, access_token: str, playlist_id: str, track_ids: List[str]) -> None:
        pass
