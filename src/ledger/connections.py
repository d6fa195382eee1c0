"""
Connection Directory

Maintains the one-sided links from a user to the peers whose ledgers
they may view.

DESIGN DECISION: Linking is NOT reciprocal. A adding B only changes A's
profile; B has to add A separately to see A's ledger. The only
precondition on B is that B's profile exists.

The active partner is the first connection. Later connections are kept
but never used for partner view.
"""

from typing import Optional

import structlog

from src.ledger.errors import (
    NotFoundError,
    StoreError,
    TargetNotFoundError,
    ValidationError,
)
from src.models.ledger import ConnectionOutcome
from src.models.profile import UserProfile
from src.services.storage import (
    DuplicateError,
    ProfileStoreInterface,
    RecordNotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class ConnectionDirectory:
    """Reads and edits the connection list on user profiles."""

    def __init__(self, profiles: ProfileStoreInterface):
        self._profiles = profiles

    async def _ensure_profile(self, user_id: str) -> UserProfile:
        """Fetch the profile, creating an empty one on first access."""
        try:
            profile = await self._profiles.get(user_id)
        except StorageError as e:
            raise StoreError(f"Could not load profile: {e}") from e
        if profile is not None:
            return profile

        try:
            profile = await self._profiles.create(user_id)
        except DuplicateError:
            # Created concurrently by another session; read it back.
            try:
                profile = await self._profiles.get(user_id)
            except StorageError as e:
                raise StoreError(f"Could not load profile: {e}") from e
            if profile is None:
                raise NotFoundError(f"Profile could not be created: {user_id}")
        except StorageError as e:
            raise NotFoundError(f"Profile could not be created: {user_id}") from e

        logger.info("profile_created", user_id=user_id)
        return profile

    async def fetch_connections(self, user_id: str) -> list[str]:
        """
        Current connections, in the order they were added.

        Raises:
            NotFoundError: If the profile is absent and cannot be created
            StoreError: If the store fails while reading
        """
        profile = await self._ensure_profile(user_id)
        return list(profile.connections)

    async def active_partner(self, user_id: str) -> Optional[str]:
        """The first connection, or None when there is none."""
        connections = await self.fetch_connections(user_id)
        return connections[0] if connections else None

    async def add_connection(self, self_id: str, target_id: str) -> ConnectionOutcome:
        """
        Declare a link from self_id to target_id.

        Returns:
            ADDED, or ALREADY_CONNECTED when the link exists (nothing written)

        Raises:
            ValidationError: Empty target, or target is self_id
            TargetNotFoundError: target_id has no profile
            StoreError: The store failed
        """
        target_id = (target_id or "").strip()
        if not target_id:
            raise ValidationError("Please enter a user ID")
        if target_id == self_id:
            raise ValidationError("You cannot connect to your own user ID")

        try:
            target = await self._profiles.get(target_id)
        except StorageError as e:
            raise StoreError(f"Could not look up user: {e}") from e
        if target is None:
            raise TargetNotFoundError(f"User not found: {target_id}")

        profile = await self._ensure_profile(self_id)
        if profile.is_connected_to(target_id):
            return ConnectionOutcome.ALREADY_CONNECTED

        try:
            await self._profiles.append_connection(self_id, target_id)
        except RecordNotFoundError as e:
            raise NotFoundError(f"Profile not found: {self_id}") from e
        except StorageError as e:
            raise StoreError(f"Could not save connection: {e}") from e

        logger.info("connection_added", user_id=self_id, target_id=target_id)
        return ConnectionOutcome.ADDED

    async def remove_connection(self, self_id: str, target_id: str) -> ConnectionOutcome:
        """
        Remove target_id from self_id's connections. Idempotent.

        Returns:
            REMOVED, or NOT_CONNECTED when there was nothing to remove
        """
        target_id = (target_id or "").strip()
        try:
            profile = await self._profiles.get(self_id)
        except StorageError as e:
            raise StoreError(f"Could not load profile: {e}") from e
        if profile is None or not profile.is_connected_to(target_id):
            return ConnectionOutcome.NOT_CONNECTED

        try:
            await self._profiles.remove_connection(self_id, target_id)
        except StorageError as e:
            raise StoreError(f"Could not remove connection: {e}") from e

        logger.info("connection_removed", user_id=self_id, target_id=target_id)
        return ConnectionOutcome.REMOVED
