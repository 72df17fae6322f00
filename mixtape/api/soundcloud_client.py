"""
SoundCloud API client implementation.
SoundCloud exposes no audio analysis, so candidates from here carry metadata only.
"""

import logging
from typing import Dict, Any, List, Optional
from urllib.parse import urlencode
from config.settings import APIConfig, GatewayConfig
from mixtape.api.base_client import ProviderClient
from mixtape.models import AudioFeatures, ArtistRef, Provider, Track
from mixtape.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

def _collection(result: Any) -> List[Dict[str, Any]]:
    """Unwrap a paginated ``{"collection": [...]}`` response or a bare list."""
    if isinstance(result, list):
        return result
    if isinstance(result, dict):
        return result.get("collection") or []
    return []

class SoundCloudClient(ProviderClient):
    """SoundCloud API client; app calls authenticate with the client id."""

    provider = Provider.SOUNDCLOUD
    token_url = "https://api.soundcloud.com/oauth2/token"
    authorize_url = "https://api.soundcloud.com/connect"

    def __init__(
        self,
        client_id: str,
        client_secret: Optional[str],
        config: APIConfig,
        redirect_uri: Optional[str] = None,
        gateway_config: Optional[GatewayConfig] = None,
        store: Optional[RecordStore] = None,
        search_ttl: int = 3600
    ):
        super().__init__(config, gateway_config=gateway_config, store=store, search_ttl=search_ttl)
        self.client_id = client_id
        self.client_secret = client_secret or ""
        self.redirect_uri = redirect_uri

    def _auth_headers(self, access_token: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"OAuth {access_token}"
        return headers

    def _default_params(self) -> Dict[str, Any]:
        return {"client_id": self.client_id}

    def authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": "non-expiring",
            "redirect_uri": self.redirect_uri or "",
        }
        if state:
            params["state"] = state
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri or "",
        }
        return await self._request_token(data)

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        return await self._request_token(data)

    async def get_current_user(self, access_token: str) -> Dict[str, Any]:
        return await self._make_request("GET", "me", access_token=access_token)

    async def get_top_artists(self, access_token: str, limit: int = 50) -> List[ArtistRef]:
        """Followed accounts stand in for top artists."""
        result = await self._make_request(
            "GET", "me/followings", access_token=access_token, params={"limit": limit}
        )
        return [ArtistRef.from_soundcloud_data(user) for user in _collection(result) if user.get("id")]

    async def get_top_tracks(self, access_token: str, limit: int = 50) -> List[Track]:
        """Liked tracks stand in for top tracks."""
        result = await self._make_request(
            "GET", "me/likes/tracks", access_token=access_token, params={"limit": limit}
        )
        tracks = []
        for item in _collection(result):
            # Like objects wrap the track; the tracks endpoint returns them bare
            track = item.get("track", item)
            if track and track.get("id"):
                tracks.append(Track.from_soundcloud_data(track))
        return tracks

    async def search_tracks(self, query: str, limit: int = 20, access_token: Optional[str] = None) -> List[Track]:
        params = {"q": query, "limit": limit}

        if self.store:
            cache_key = self.store.get_cache_key("soundcloud_search", query, limit)
            result = await self._cached_request(
                cache_key, "GET", "tracks", ttl=self.search_ttl, access_token=access_token, params=params
            )
        else:
            result = await self._make_request("GET", "tracks", access_token=access_token, params=params)

        return [Track.from_soundcloud_data(item) for item in _collection(result) if item.get("id")]

    async def get_audio_features(self, track_ids: List[str], access_token: Optional[str] = None) -> Dict[str, AudioFeatures]:
        return {}

    async def create_playlist(
        self,
        access_token: str,
        provider_user_id: Optional[str],
        name: str,
        description: str = ""
    ) -> Dict[str, Any]:
        data = {
            "playlist": {
                "title": name,
                "description": description,
                "sharing": "private",
                "tracks": []
            }
        }
        return await self._make_request("POST", "playlists", access_token=access_token, json=data)

    async def add_tracks_to_playlist(self, access_token: str, playlist_id: str, track_ids: List[str]) -> None:
        """SoundCloud replaces the track list wholesale on update."""
        data = {
            "playlist": {
                "tracks": [{"id": int(track_id)} if track_id.isdigit() else {"id": track_id} for track_id in track_ids]
            }
        }
        await self._make_request("PUT", f"playlists/{playlist_id}", access_token=access_token, json=data)
