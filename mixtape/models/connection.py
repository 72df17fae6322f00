"""
Provider connection model holding a user's OAuth token custody state.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Any, Optional
from .provider import Provider

class ConnectionStatus(str, Enum):
    ACTIVE = "active"
    INVALID = "invalid"

@dataclass(frozen=True)
class Connection:
    """One user's authorization against one provider."""
    user_id: str
    provider: Provider
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None    # None for non-expiring tokens
    provider_user_id: Optional[str] = None
    status: ConnectionStatus = ConnectionStatus.ACTIVE

    @property
    def key(self) -> tuple:
        return (self.user_id, self.provider)

    @property
    def is_valid(self) -> bool:
        return self.status == ConnectionStatus.ACTIVE

    def needs_refresh(self, now: datetime, skew_seconds: int = 60) -> bool:
        """True once the token is inside the refresh skew window."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at - timedelta(seconds=skew_seconds)

    def with_tokens(
        self,
        access_token: str,
        expires_in: Optional[int],
        refresh_token: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> "Connection":
        """
        Apply a successful token grant.

        ``expires_at`` never moves backwards; a grant without ``expires_in``
        keeps the previous expiry.
        """
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_in is not None:
            candidate = now + timedelta(seconds=int(expires_in))
            expires_at = candidate if expires_at is None else max(expires_at, candidate)

        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            expires_at=expires_at,
            status=ConnectionStatus.ACTIVE
        )

    def invalidated(self) -> "Connection":
        return replace(self, status=ConnectionStatus.INVALID)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "provider": self.provider.value,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "provider_user_id": self.provider_user_id,
            "status": self.status.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Connection":
        expires_at = None
        if data.get("expires_at"):
            expires_at = datetime.fromisoformat(data["expires_at"])

        return cls(
            user_id=data["user_id"],
            provider=Provider(data["provider"]),
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            provider_user_id=data.get("provider_user_id"),
            status=ConnectionStatus(data.get("status", ConnectionStatus.ACTIVE.value))
        )
