"""
Session ledger: the append-only conversation log and playlist records.
"""

import asyncio
import logging
from dataclasses import replace
from typing import List, Optional
from mixtape.exceptions import RecordNotFound
from mixtape.models import Message, MessageRole, Playlist, Provider
from mixtape.storage.repositories import MessageRepository, PlaylistRepository

logger = logging.getLogger(__name__)

class SessionLedger:
    """Records conversation turns and the playlists they produced."""

    def __init__(self, messages: MessageRepository, playlists: PlaylistRepository):
        self.messages = messages
        self.playlists = playlists

    async def record_turn(
        self,
        conversation_id: str,
        prompt: str,
        playlist: Optional[Playlist] = None,
        reply: Optional[str] = None
    ) -> Message:
        """
        Append the user's prompt and, when a playlist was produced, an
        assistant message carrying it.

        Every record is built before anything is written, and the writes run
        shielded so a cancelled caller never leaves half a turn behind.

        Returns:
            The last message written
        """
        user = Message.create(conversation_id, MessageRole.USER, prompt)
        bound = None
        turn = [user]

        if playlist is not None:
            assistant = Message.create(
                conversation_id,
                MessageRole.ASSISTANT,
                reply or playlist.description
            )
            bound = playlist.with_message(assistant.id)
            turn.append(replace(assistant, playlist=bound))

        await asyncio.shield(self._write_turn(turn, bound))
        if bound is not None:
            logger.info(f"Recorded playlist {bound.id} in conversation {conversation_id}")
        return turn[-1]

    async def _write_turn(self, turn: List[Message], playlist: Optional[Playlist]):
        if playlist is not None:
            await self.playlists.save(playlist)
        for message in turn:
            await self.messages.append(message)

    async def append_export(self, playlist_id: str, provider: Provider) -> Playlist:
        """Mark a playlist as exported to a provider. Idempotent."""
        playlist = await self.get_playlist(playlist_id)
        if playlist is None:
            raise RecordNotFound("playlist", playlist_id)

        updated = playlist.with_export(provider)
        if updated is not playlist:
            await self.playlists.save(updated)
        return updated

    async def get_history(self, conversation_id: str, limit: Optional[int] = None) -> List[Message]:
        history = await self.messages.list(conversation_id)
        if limit is not None:
            history = history[-limit:]
        return history

    async def get_playlist(self, playlist_id: str) -> Optional[Playlist]:
        return await self.playlists.get(playlist_id)
