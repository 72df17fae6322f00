"""
Typed repositories over the record store, one per persisted record type.
"""

from typing import List, Optional, Tuple
from mixtape.models import Connection, Message, MusicProfile, Playlist, Provider
from mixtape.storage.record_store import RecordStore

class ConnectionRepository:
    """Connections keyed by (user_id, provider); at most one per pair."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _key(self, user_id: str, provider: Provider) -> str:
        return self.store.get_cache_key("connection", user_id, provider.value)

    async def get(self, user_id: str, provider: Provider) -> Optional[Connection]:
        data = await self.store.get(self._key(user_id, provider))
        return Connection.from_dict(data) if data else None

    async def save(self, connection: Connection) -> Connection:
        await self.store.set(self._key(connection.user_id, connection.provider), connection.to_dict())
        return connection

    async def list_for_user(self, user_id: str) -> List[Connection]:
        connections = []
        for provider in Provider:
            connection = await self.get(user_id, provider)
            if connection:
                connections.append(connection)
        return connections

    def _state_key(self, state: str) -> str:
        return self.store.get_cache_key("oauth_state", state)

    async def save_state(self, state: str, user_id: str, provider: Provider, ttl: int) -> None:
        """Remember who started an authorization, for ``ttl`` seconds."""
        await self.store.set(self._state_key(state), {"user_id": user_id, "provider": provider.value}, ttl)

    async def consume_state(self, state: str) -> Optional[Tuple[str, Provider]]:
        """Single use: the state record is gone once read."""
        key = self._state_key(state)
        data = await self.store.get(key)
        if not data:
            return None
        await self.store.delete(key)
        return data["user_id"], Provider(data["provider"])

class ProfileRepository:
    def __init__(self, store: RecordStore):
        self.store = store

    def _key(self, user_id: str) -> str:
        return self.store.get_cache_key("profile", user_id)

    async def get(self, user_id: str) -> Optional[MusicProfile]:
        data = await self.store.get(self._key(user_id))
        return MusicProfile.from_dict(data) if data else None

    async def save(self, profile: MusicProfile) -> MusicProfile:
        await self.store.set(self._key(profile.user_id), profile.to_dict())
        return profile

class PlaylistRepository:
    def __init__(self, store: RecordStore):
        self.store = store

    def _key(self, playlist_id: str) -> str:
        return self.store.get_cache_key("playlist", playlist_id)

    async def get(self, playlist_id: str) -> Optional[Playlist]:
        data = await self.store.get(self._key(playlist_id))
        return Playlist.from_dict(data) if data else None

    async def save(self, playlist: Playlist) -> Playlist:
        await self.store.set(self._key(playlist.id), playlist.to_dict())
        return playlist

class MessageRepository:
    """Append-only message log per conversation."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _key(self, conversation_id: str) -> str:
        return self.store.get_cache_key("conversation", conversation_id, "messages")

    async def append(self, message: Message) -> Message:
        await self.store.append(self._key(message.conversation_id), message.to_dict())
        return message

    async def list(self, conversation_id: str) -> List[Message]:
        return [Message.from_dict(data) for data in await self.store.get_list(self._key(conversation_id))]
