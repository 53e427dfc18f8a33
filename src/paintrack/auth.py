"""Password hashing, registration and credential checks.

Password hashes are stored as ``<hex scrypt key>.<hex salt>`` (64-byte key,
16-byte salt) so they can be verified without extra columns.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

from paintrack.storage.errors import ValidationError
from paintrack.storage.facade import StorageFacade
from paintrack.storage.models import NewUser, User

logger = logging.getLogger(__name__)

_KEY_LENGTH = 64
_SALT_BYTES = 16
_SCRYPT_N = 16384
_SCRYPT_R = 8
_SCRYPT_P = 1


def _derive(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode(),
        salt=salt.encode(),
        n=_SCRYPT_N,
        r=_SCRYPT_R,
        p=_SCRYPT_P,
        dklen=_KEY_LENGTH,
    )


def hash_password(password: str) -> str:
    salt = secrets.token_hex(_SALT_BYTES)
    return f"{_derive(password, salt).hex()}.{salt}"


def verify_password(password: str, stored: str) -> bool:
    """Constant-time comparison of *password* against a stored hash.

    Malformed stored values never match.
    """
    hashed, sep, salt = stored.partition(".")
    if not sep or not hashed or not salt:
        return False
    try:
        expected = bytes.fromhex(hashed)
    except ValueError:
        return False
    return hmac.compare_digest(_derive(password, salt), expected)


async def register_user(
    facade: StorageFacade,
    username: str,
    password: str,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
    email: str | None = None,
) -> User:
    """Create a user after checking the username is free.

    Raises
    ------
    ValidationError
        If the username is taken or the credentials are empty.
    """
    if not isinstance(password, str) or not password:
        raise ValidationError("password must be a non-empty string")
    if await facade.get_user_by_username(username) is not None:
        raise ValidationError("Username already exists")
    user = await facade.create_user(
        NewUser(
            username=username,
            password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            email=email,
        )
    )
    logger.info("Registered user %s (id=%s)", username, user.id)
    return user


async def authenticate(facade: StorageFacade, username: str, password: str) -> User | None:
    """Return the user when the credentials match, otherwise None."""
    user = await facade.get_user_by_username(username)
    if user is None or not verify_password(password, user.password):
        logger.info("Failed login for username %r", username)
        return None
    return user
