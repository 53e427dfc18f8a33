"""Tests for password hashing, registration and login checks."""

from __future__ import annotations

import pytest

from paintrack.auth import authenticate, hash_password, register_user, verify_password
from paintrack.config import StorageConfig
from paintrack.storage.errors import ValidationError
from paintrack.storage.facade import StorageFacade

pytestmark = pytest.mark.unit


@pytest.fixture
async def facade():
    facade = StorageFacade(StorageConfig(database_url=None))
    await facade.init()
    yield facade
    await facade.shutdown()


class TestPasswordHashing:
    def test_hash_format_is_hex_key_dot_hex_salt(self):
        hashed = hash_password("secret1")
        key, salt = hashed.split(".")
        assert len(key) == 128
        assert len(salt) == 32
        int(key, 16)
        int(salt, 16)

    def test_salts_differ(self):
        assert hash_password("secret1") != hash_password("secret1")

    def test_verify(self):
        hashed = hash_password("secret1")
        assert verify_password("secret1", hashed) is True
        assert verify_password("secret2", hashed) is False

    @pytest.mark.parametrize("stored", ["", "nodot", ".salt", "zz.salt", "abcd."])
    def test_malformed_hash_never_matches(self, stored):
        assert verify_password("secret1", stored) is False


class TestRegistration:
    async def test_register_stores_hash_not_password(self, facade):
        user = await register_user(facade, "alice", "secret1", first_name="Alice")
        assert user.username == "alice"
        assert user.first_name == "Alice"
        assert user.password != "secret1"
        assert verify_password("secret1", user.password)

    async def test_duplicate_username_rejected(self, facade):
        await register_user(facade, "alice", "secret1")
        with pytest.raises(ValidationError, match="Username already exists"):
            await register_user(facade, "alice", "another")

    @pytest.mark.parametrize(("username", "password"), [("", "secret1"), ("alice", "")])
    async def test_empty_credentials_rejected(self, facade, username, password):
        with pytest.raises(ValidationError):
            await register_user(facade, username, password)


class TestAuthenticate:
    async def test_valid_credentials(self, facade):
        registered = await register_user(facade, "alice", "secret1")
        assert await authenticate(facade, "alice", "secret1") == registered

    async def test_wrong_password(self, facade):
        await register_user(facade, "alice", "secret1")
        assert await authenticate(facade, "alice", "wrong") is None

    async def test_unknown_user(self, facade):
        assert await authenticate(facade, "nobody", "secret1") is None
