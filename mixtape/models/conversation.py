"""
Conversation log models. Messages are append-only.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional
from .playlist import Playlist

class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"

@dataclass(frozen=True)
class Message:
    """One turn entry in a conversation, optionally carrying a playlist."""
    id: str
    conversation_id: str
    role: MessageRole
    content: str
    playlist: Optional[Playlist] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(cls, conversation_id: str, role: MessageRole, content: str,
               playlist: Optional[Playlist] = None) -> "Message":
        return cls(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            playlist=playlist
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "role": self.role.value,
            "content": self.content,
            "playlist": self.playlist.to_dict() if self.playlist else None,
            "created_at": self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        playlist = None
        if data.get("playlist"):
            playlist = Playlist.from_dict(data["playlist"])

        return cls(
            id=data["id"],
            conversation_id=data["conversation_id"],
            role=MessageRole(data["role"]),
            content=data.get("content", ""),
            playlist=playlist,
            created_at=datetime.fromisoformat(data["created_at"])
        )
