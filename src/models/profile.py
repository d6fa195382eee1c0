"""
User profile and session models.

A profile holds the one-sided connections a user has declared to other
users. The first connection is the active partner for partner view.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionContext(BaseModel):
    """
    The authenticated user a set of components acts on behalf of.

    Passed explicitly into every flow; nothing reads the current user from
    global state.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1, description="Opaque user identifier")


class UserProfile(BaseModel):
    """Per-user profile document."""

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    connections: list[str] = Field(
        default_factory=list,
        description="Peer user ids, in the order they were added",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @field_validator("connections")
    @classmethod
    def dedupe_connections(cls, v: list[str]) -> list[str]:
        """Keep first occurrence of each id; drop blanks."""
        seen: list[str] = []
        for peer in v:
            peer = peer.strip()
            if peer and peer not in seen:
                seen.append(peer)
        return seen

    @property
    def active_partner(self) -> Optional[str]:
        """First connection, or None when the user has no connections."""
        return self.connections[0] if self.connections else None

    def is_connected_to(self, user_id: str) -> bool:
        return user_id in self.connections
