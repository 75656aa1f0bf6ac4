"""
Unit tests for usernames and UserRepository.
"""

import pytest

from common.core.exceptions import ValidationError
from packages.users.models.domain.user import normalize_username
from packages.users.repositories.user_repository import UserRepository


class TestNormalizeUsername:
    """Tests for normalize_username."""

    def test_strips_domain_suffix(self):
        """Test that everything from the first @ is dropped."""
        assert normalize_username("alice@example.org") == "alice"
        assert normalize_username("bob@a@b") == "bob"
        assert normalize_username("carol") == "carol"

    @pytest.mark.parametrize("username", ["", "   ", "@example.org"])
    def test_empty_result_is_rejected(self, username):
        """Test that a username normalizing to nothing raises ValidationError."""
        with pytest.raises(ValidationError):
            normalize_username(username)


@pytest.mark.asyncio
class TestUserRepository:
    """Tests for UserRepository."""

    async def test_ensure_user_creates_once(self, test_db):
        """Test that ensure_user inserts a missing user and then returns the same row."""
        repo = UserRepository()

        first = await repo.ensure_user("alice")
        second = await repo.ensure_user("alice")

        assert first.id is not None
        assert second.id == first.id
        assert second.username == "alice"

    async def test_get_by_username_missing(self, test_db):
        """Test that an unknown username returns None."""
        repo = UserRepository()
        assert await repo.get_by_username("nobody") is None
