"""Tests for the connection directory."""

import pytest

from src.ledger import (
    ConnectionDirectory,
    NotFoundError,
    StoreError,
    TargetNotFoundError,
    ValidationError,
)
from src.models import ConnectionOutcome


class TestConnectionDirectory:
    """One-sided links between user profiles."""

    @pytest.mark.asyncio
    async def test_add_connection(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        outcome = await directory.add_connection("alice", "bob")
        assert outcome == ConnectionOutcome.ADDED
        assert await directory.fetch_connections("alice") == ["bob"]

    @pytest.mark.asyncio
    async def test_links_are_not_reciprocal(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        await directory.add_connection("alice", "bob")
        assert await directory.fetch_connections("bob") == []
        assert await directory.active_partner("bob") is None

    @pytest.mark.asyncio
    async def test_self_connection_rejected_without_store_write(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        with pytest.raises(ValidationError):
            await directory.add_connection("alice", "alice")
        assert profile_store.writes == []

    @pytest.mark.asyncio
    async def test_empty_target_rejected(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        with pytest.raises(ValidationError):
            await directory.add_connection("alice", "   ")
        assert profile_store.writes == []

    @pytest.mark.asyncio
    async def test_unknown_target(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        with pytest.raises(TargetNotFoundError):
            await directory.add_connection("alice", "mallory")
        assert await directory.fetch_connections("alice") == []

    @pytest.mark.asyncio
    async def test_already_connected_is_not_an_error(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        await directory.add_connection("alice", "bob")
        writes_before = list(profile_store.writes)
        outcome = await directory.add_connection("alice", "bob")
        assert outcome == ConnectionOutcome.ALREADY_CONNECTED
        assert profile_store.writes == writes_before
        assert await directory.fetch_connections("alice") == ["bob"]

    @pytest.mark.asyncio
    async def test_first_connection_is_active_partner(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        await directory.add_connection("alice", "bob")
        await directory.add_connection("alice", "carol")
        assert await directory.fetch_connections("alice") == ["bob", "carol"]
        assert await directory.active_partner("alice") == "bob"

    @pytest.mark.asyncio
    async def test_remove_connection_is_idempotent(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        await directory.add_connection("alice", "bob")
        assert await directory.remove_connection("alice", "bob") == ConnectionOutcome.REMOVED
        assert await directory.remove_connection("alice", "bob") == ConnectionOutcome.NOT_CONNECTED
        assert await directory.fetch_connections("alice") == []

    @pytest.mark.asyncio
    async def test_profile_created_on_first_access(self, profile_store):
        directory = ConnectionDirectory(profile_store)
        assert await directory.fetch_connections("dave") == []
        assert ("create", "dave") in profile_store.writes
        assert await profile_store.get("dave") is not None

    @pytest.mark.asyncio
    async def test_profile_creation_failure_is_not_found(self, profile_store):
        profile_store.fail_create = True
        directory = ConnectionDirectory(profile_store)
        with pytest.raises(NotFoundError):
            await directory.fetch_connections("dave")

    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self, profile_store):
        profile_store.fail_append = True
        directory = ConnectionDirectory(profile_store)
        with pytest.raises(StoreError):
            await directory.add_connection("alice", "bob")

    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self, profile_store):
        profile_store.fail_get = True
        directory = ConnectionDirectory(profile_store)
        with pytest.raises(StoreError):
            await directory.fetch_connections("alice")
