"""
Playlist export service for writing a synthesized mixtape into a provider library.
"""

import logging
from mixtape.api.gateway import ProviderGateway
from mixtape.exceptions import RecordNotFound
from mixtape.models import Playlist, Provider
from mixtape.services.session_ledger import SessionLedger

logger = logging.getLogger(__name__)

class PlaylistExporter:
    """Creates a private provider playlist and records the export."""

    def __init__(self, gateway: ProviderGateway, ledger: SessionLedger):
        self.gateway = gateway
        self.ledger = ledger

    async def export(self, user_id: str, playlist_id: str, provider: Provider) -> Playlist:
        """
        Export a playlist to one provider.

        Only tracks that carry an id on that provider are added. A playlist
        already exported there is returned unchanged.

        Raises:
            RecordNotFound: unknown playlist, or one owned by another user
            ReauthRequired: the provider connection is missing or invalid
            ProviderUnavailable: the provider failed after retries
        """
        playlist = await self.ledger.get_playlist(playlist_id)
        if playlist is None or playlist.user_id != user_id:
            raise RecordNotFound("playlist", playlist_id)

        if provider in playlist.exported_to:
            logger.info(f"Playlist {playlist_id} already exported to {provider.value}")
            return playlist

        connection = await self.gateway.get_connection(user_id, provider)
        track_ids = [
            track.provider_ids[provider.value]
            for track in playlist.tracks
            if provider.value in track.provider_ids
        ]

        created = await self.gateway.create_playlist(connection, playlist.name, playlist.description)
        remote_id = str(created["id"])
        if track_ids:
            await self.gateway.add_tracks_to_playlist(connection, remote_id, track_ids)

        logger.info(
            f"Exported playlist {playlist_id} to {provider.value} as {remote_id} "
            f"({len(track_ids)} of {playlist.track_count} tracks)"
        )
        return await self.ledger.append_export(playlist.id, provider)
