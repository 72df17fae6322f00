"""
Spotify Web API client implementation.
Provides OAuth 2.0 token grants, top items, track search, audio features, and playlist export.
"""

import base64
import logging
from typing import Dict, Any, List, Optional
from datetime import datetime, timedelta
from urllib.parse import urlencode
from config.settings import APIConfig, GatewayConfig
from mixtape.api.base_client import ProviderClient
from mixtape.models import AudioFeatures, ArtistRef, Provider, Track
from mixtape.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

SCOPES = [
    "user-read-email",
    "user-read-private",
    "user-top-read",
    "user-library-read",
    "playlist-modify-public",
    "playlist-modify-private",
]

class SpotifyClient(ProviderClient):
    """Spotify Web API client for user-scoped and app-scoped calls."""

    provider = Provider.SPOTIFY
    token_url = "https://accounts.spotify.com/api/token"
    authorize_url = "https://accounts.spotify.com/authorize"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        config: APIConfig,
        redirect_uri: Optional[str] = None,
        gateway_config: Optional[GatewayConfig] = None,
        store: Optional[RecordStore] = None,
        search_ttl: int = 3600
    ):
        """
        Initialize Spotify client.

        Args:
            client_id: Spotify application client ID
            client_secret: Spotify application client secret
            config: Base URL, timeout and rate budget
            redirect_uri: OAuth callback registered with the application
            gateway_config: Retry policy
            store: Optional record store used to cache search results
            search_ttl: Lifetime of cached search results in seconds
        """
        super().__init__(config, gateway_config=gateway_config, store=store, search_ttl=search_ttl)
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._app_token: Optional[str] = None
        self._app_token_expires_at: Optional[datetime] = None

    def _basic_auth_header(self) -> Dict[str, str]:
        credentials = f"{self.client_id}:{self.client_secret}"
        encoded_credentials = base64.b64encode(credentials.encode()).decode()
        return {"Authorization": f"Basic {encoded_credentials}"}

    def authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": " ".join(SCOPES),
            "redirect_uri": self.redirect_uri or "",
        }
        if state:
            params["state"] = state
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri or "",
        }
        return await self._request_token(data, headers=self._basic_auth_header())

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        return await self._request_token(data, headers=self._basic_auth_header())

    async def _get_app_token(self) -> str:
        """Client-credentials token for catalog calls made without a user connection."""
        if self._app_token and self._app_token_expires_at and datetime.now() < self._app_token_expires_at:
            return self._app_token

        token_data = await self._request_token(
            {"grant_type": "client_credentials"},
            headers=self._basic_auth_header()
        )
        expires_in = token_data.get("expires_in", 3600)
        self._app_token = token_data["access_token"]
        self._app_token_expires_at = datetime.now() + timedelta(seconds=expires_in - 60)
        return self._app_token

    async def get_current_user(self, access_token: str) -> Dict[str, Any]:
        return await self._make_request("GET", "me", access_token=access_token)

    async def get_top_artists(self, access_token: str, limit: int = 50, time_range: str = "medium_term") -> List[ArtistRef]:
        result = await self._make_request(
            "GET", "me/top/artists",
            access_token=access_token,
            params={"limit": min(limit, 50), "time_range": time_range}
        )
        return [ArtistRef.from_spotify_data(item) for item in result.get("items", [])]

    async def get_top_tracks(self, access_token: str, limit: int = 50, time_range: str = "medium_term") -> List[Track]:
        result = await self._make_request(
            "GET", "me/top/tracks",
            access_token=access_token,
            params={"limit": min(limit, 50), "time_range": time_range}
        )
        return [Track.from_spotify_data(item) for item in result.get("items", []) if item.get("id")]

    async def search_tracks(self, query: str, limit: int = 20, access_token: Optional[str] = None) -> List[Track]:
        """
        Search for tracks on Spotify.

        Args:
            query: Search query string
            limit: Maximum number of results (1-50)
            access_token: User token; an app token is used when omitted

        Returns:
            List of tracks without audio features
        """
        token = access_token or await self._get_app_token()
        params = {
            "q": query,
            "type": "track",
            "limit": min(limit, 50),
            "market": "US"
        }

        if self.store:
            cache_key = self.store.get_cache_key("spotify_search", query, limit)
            result = await self._cached_request(
                cache_key, "GET", "search", ttl=self.search_ttl, access_token=token, params=params
            )
        else:
            result = await self._make_request("GET", "search", access_token=token, params=params)

        items = (result.get("tracks") or {}).get("items") or []
        return [Track.from_spotify_data(item) for item in items if item and item.get("id")]

    async def get_audio_features(self, track_ids: List[str], access_token: Optional[str] = None) -> Dict[str, AudioFeatures]:
        """
        Get audio features for up to 100 tracks per call.

        Returns:
            Mapping of track id to features; tracks Spotify has no analysis for are omitted
        """
        if not track_ids:
            return {}

        token = access_token or await self._get_app_token()
        features: Dict[str, AudioFeatures] = {}

        for start in range(0, len(track_ids), 100):
            chunk = track_ids[start:start + 100]
            result = await self._make_request(
                "GET", "audio-features",
                access_token=token,
                params={"ids": ",".join(chunk)}
            )
            for item in result.get("audio_features") or []:
                if not item or not item.get("id"):
                    continue
                try:
                    features[item["id"]] = AudioFeatures.from_dict(item)
                except ValueError as e:
                    logger.warning(f"Discarding out-of-range audio features for {item['id']}: {e}")

        return features

    async def create_playlist(
        self,
        access_token: str,
        provider_user_id: Optional[str],
        name: str,
        description: str = "",
        public: bool = False
    ) -> Dict[str, Any]:
        """
        Create a new playlist in the user's library.

        Returns:
            Spotify playlist object
        """
        if not provider_user_id:
            user = await self.get_current_user(access_token)
            provider_user_id = user["id"]

        data = {
            "name": name,
            "description": description,
            "public": public
        }
        return await self._make_request(
            "POST", f"users/{provider_user_id}/playlists", access_token=access_token, json=data
        )

    async def add_tracks_to_playlist(self, access_token: str, playlist_id: str, track_ids: List[str]) -> None:
        """Add tracks in chunks of 100, the Spotify per-request maximum."""
        uris = [f"spotify:track:{track_id}" for track_id in track_ids]
        for start in range(0, len(uris), 100):
            await self._make_request(
                "POST", f"playlists/{playlist_id}/tracks",
                access_token=access_token,
                json={"uris": uris[start:start + 100]}
            )
