"""
Provider gateway: token custody, per-connection refresh locking, and error containment.

Everything above the gateway sees only ``ReauthRequired`` and
``ProviderUnavailable``; transport errors from the clients stop here.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4
import aiohttp
from config.settings import GatewayConfig
from mixtape.api.base_client import APIError, AuthenticationError, ProviderClient, RateLimitError, TokenRefreshError
from mixtape.exceptions import ProviderUnavailable, ReauthRequired, RecordNotFound
from mixtape.models import AudioFeatures, Connection, Provider, Track
from mixtape.storage.repositories import ConnectionRepository

logger = logging.getLogger(__name__)

TOP_CATEGORIES = ("artists", "tracks")

class ProviderGateway:
    """Single entry point for authenticated and app-level provider calls."""

    def __init__(
        self,
        clients: Dict[Provider, ProviderClient],
        connections: ConnectionRepository,
        config: Optional[GatewayConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.clients = clients
        self.connections = connections
        self.config = config or GatewayConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks: Dict[tuple, asyncio.Lock] = {}

    def client(self, provider: Provider) -> ProviderClient:
        if provider not in self.clients:
            raise ProviderUnavailable(provider, f"No client registered for {provider.value}")
        return self.clients[provider]

    def _lock_for(self, connection: Connection) -> asyncio.Lock:
        lock = self._locks.get(connection.key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[connection.key] = lock
        return lock

    async def close(self):
        for client in self.clients.values():
            await client.close()

    async def get_connection(self, user_id: str, provider: Provider) -> Connection:
        connection = await self.connections.get(user_id, provider)
        if connection is None:
            raise ReauthRequired(provider, f"{provider.value} is not connected")
        return connection

    async def ensure_valid_token(self, connection: Connection) -> Connection:
        """
        Return a connection whose access token is usable right now.

        Refreshes at most once per connection no matter how many callers arrive
        concurrently: later callers find the refreshed record on re-read.
        """
        if not connection.is_valid:
            raise ReauthRequired(connection.provider)

        if not connection.needs_refresh(self._clock(), self.config.refresh_skew_seconds):
            return connection

        return await self._refresh(connection, force=False)

    async def refresh(self, user_id: str, provider: Provider, force: bool = True) -> Connection:
        """Refresh a stored connection on request. Idempotent under concurrency."""
        connection = await self.get_connection(user_id, provider)
        if not connection.is_valid:
            raise ReauthRequired(provider)
        return await self._refresh(connection, force=force)

    async def _refresh(self, connection: Connection, force: bool) -> Connection:
        provider = connection.provider
        async with self._lock_for(connection):
            stored = await self.connections.get(connection.user_id, provider) or connection
            if not stored.is_valid:
                raise ReauthRequired(provider)

            if force:
                if stored.access_token != connection.access_token:
                    return stored
            elif not stored.needs_refresh(self._clock(), self.config.refresh_skew_seconds):
                return stored

            if not stored.refresh_token:
                await self.connections.save(stored.invalidated())
                raise ReauthRequired(provider, f"{provider.value} token expired and cannot be refreshed")

            logger.info(f"Refreshing {provider.value} token for user {stored.user_id}")
            try:
                grant = await self.client(provider).refresh_access_token(stored.refresh_token)
            except TokenRefreshError as e:
                if e.permanent:
                    logger.warning(f"{provider.value} refresh rejected for user {stored.user_id}: {e}")
                    await self.connections.save(stored.invalidated())
                    raise ReauthRequired(provider) from e
                raise ProviderUnavailable(provider, str(e)) from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise ProviderUnavailable(provider, f"{provider.value} token refresh failed: {e}") from e

            refreshed = stored.with_tokens(
                access_token=grant["access_token"],
                expires_in=grant.get("expires_in"),
                refresh_token=grant.get("refresh_token"),
                now=self._clock()
            )
            await self.connections.save(refreshed)
            return refreshed

    async def authorization_url(self, user_id: str, provider: Provider) -> str:
        """Start linking a provider: a single-use state bound to the user, inside the provider's consent URL."""
        client = self.client(provider)
        state = uuid4().hex
        await self.connections.save_state(state, user_id, provider, self.config.oauth_state_ttl_seconds)
        return client.authorization_url(state)

    async def connect(self, user_id: str, provider: Provider, code: str, state: str) -> Connection:
        """
        Finish linking a provider from its authorization callback.

        The state must be the one issued to this user for this provider. The
        code is exchanged for tokens, the provider account id is read from
        /me, and the connection replaces any earlier one for the pair.

        Raises:
            RecordNotFound: Unknown, expired or mismatched state
            ReauthRequired: The provider rejected the code
            ProviderUnavailable: Token endpoint or /me failed transiently
        """
        client = self.client(provider)
        issued = await self.connections.consume_state(state)
        if issued != (user_id, provider):
            raise RecordNotFound("authorization state", state)

        try:
            grant = await client.exchange_code(code)
        except TokenRefreshError as e:
            if e.permanent:
                logger.warning(f"{provider.value} rejected the authorization code for user {user_id}: {e}")
                raise ReauthRequired(provider, f"{provider.value} authorization was rejected") from e
            raise ProviderUnavailable(provider, str(e)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderUnavailable(provider, f"{provider.value} code exchange failed: {e}") from e

        access_token = grant["access_token"]
        account = await self._contain(provider, lambda: client.get_current_user(access_token))
        expires_in = grant.get("expires_in")
        connection = Connection(
            user_id=user_id,
            provider=provider,
            access_token=access_token,
            refresh_token=grant.get("refresh_token"),
            expires_at=self._clock() + timedelta(seconds=int(expires_in)) if expires_in else None,
            provider_user_id=str(account["id"]) if account.get("id") is not None else None
        )

        async with self._lock_for(connection):
            await self.connections.save(connection)
        logger.info(f"Connected {provider.value} account {connection.provider_user_id} for user {user_id}")
        return connection

    async def _contain(self, provider: Provider, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Run one client operation, mapping transport failures to ProviderUnavailable."""
        try:
            return await operation()
        except (ReauthRequired, ProviderUnavailable):
            raise
        except RateLimitError as e:
            raise ProviderUnavailable(provider, f"{provider.value} still throttled after retries") from e
        except asyncio.TimeoutError as e:
            raise ProviderUnavailable(provider, f"{provider.value} timed out") from e
        except (APIError, aiohttp.ClientError) as e:
            raise ProviderUnavailable(provider, str(e)) from e

    async def _authorized(self, connection: Connection, call: Callable[[str], Awaitable[Any]]) -> Any:
        """Call with a valid user token; one forced refresh and retry on a 401."""
        provider = connection.provider
        connection = await self.ensure_valid_token(connection)
        try:
            return await self._contain(provider, lambda: call(connection.access_token))
        except ProviderUnavailable as e:
            if not isinstance(e.__cause__, AuthenticationError):
                raise

        logger.info(f"{provider.value} rejected a live token for user {connection.user_id}, forcing refresh")
        connection = await self._refresh(connection, force=True)
        return await self._contain(provider, lambda: call(connection.access_token))

    async def fetch_top(self, user_id: str, provider: Provider, category: str, limit: int = 50) -> List[Any]:
        """Top ``artists`` (ArtistRef) or ``tracks`` (Track) for a connected user."""
        if category not in TOP_CATEGORIES:
            raise ValueError(f"Unknown top category: {category}")

        connection = await self.get_connection(user_id, provider)
        client = self.client(provider)
        if category == "artists":
            return await self._authorized(connection, lambda token: client.get_top_artists(token, limit=limit))
        return await self._authorized(connection, lambda token: client.get_top_tracks(token, limit=limit))

    async def search(
        self,
        provider: Provider,
        query: str,
        limit: int = 20,
        connection: Optional[Connection] = None
    ) -> List[Track]:
        """Catalog search, user-scoped when a connection is given."""
        client = self.client(provider)
        if connection is not None:
            return await self._authorized(
                connection, lambda token: client.search_tracks(query, limit=limit, access_token=token)
            )
        return await self._contain(provider, lambda: client.search_tracks(query, limit=limit))

    async def get_audio_features(
        self,
        provider: Provider,
        track_ids: List[str],
        connection: Optional[Connection] = None
    ) -> Dict[str, AudioFeatures]:
        client = self.client(provider)
        if not track_ids:
            return {}
        if connection is not None:
            return await self._authorized(
                connection, lambda token: client.get_audio_features(track_ids, access_token=token)
            )
        return await self._contain(provider, lambda: client.get_audio_features(track_ids))

    async def create_playlist(self, connection: Connection, name: str, description: str = "") -> Dict[str, Any]:
        client = self.client(connection.provider)
        return await self._authorized(
            connection,
            lambda token: client.create_playlist(token, connection.provider_user_id, name, description)
        )

    async def add_tracks_to_playlist(self, connection: Connection, playlist_id: str, track_ids: List[str]) -> None:
        client = self.client(connection.provider)
        await self._authorized(
            connection, lambda token: client.add_tracks_to_playlist(token, playlist_id, track_ids)
        )

    async def top_artists_and_tracks(self, user_id: str, provider: Provider, limit: int = 50):
        """Both top lists for one provider, fetched concurrently."""
        artists, tracks = await asyncio.gather(
            self.fetch_top(user_id, provider, "artists", limit),
            self.fetch_top(user_id, provider, "tracks", limit)
        )
        return artists, tracks
