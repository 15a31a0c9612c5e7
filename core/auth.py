import hmac
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

settings = get_settings()

# bcrypt output is always 60 characters with a "$2a$", "$2b$" or "$2y$" prefix
BCRYPT_HASH_LENGTH = 60
BCRYPT_PREFIX = "$2"

# Compared against when the username is unknown so both paths cost one bcrypt round
DUMMY_HASH = "$2b$12$C6UzMDM.H6dfI/f/IKcEeO5s7B6M3XcIcQ5F7pJYQ6k9b1l6hE8Ce"


def create_access_token(
    data: dict[str, Any], expires_delta: timedelta | None = None
) -> str:
    """Create JWT access token carrying the user id, username and company id"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode, settings.secret_key, algorithm=settings.algorithm
    )
    assert isinstance(encoded_jwt, str)
    return encoded_jwt


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode JWT token, returns payload"""
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
        if not isinstance(payload, dict):
            raise ValueError("Token payload must be a dictionary")
        return payload
    except JWTError as e:
        raise ValueError(f"Invalid token: {str(e)}") from e


def is_password_hashed(value: str) -> bool:
    """Structural check: does the stored value look like a bcrypt hash?"""
    return len(value) == BCRYPT_HASH_LENGTH and value.startswith(BCRYPT_PREFIX)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        result = bcrypt.checkpw(
            plain_password.encode("utf-8"), hashed_password.encode("utf-8")
        )
        assert isinstance(result, bool)
        return result
    except ValueError:
        return False


def verify_stored_password(plain_password: str, stored_password: str) -> bool:
    """
    Compare a submitted password with whatever the users table holds.

    Hashed values go through bcrypt; legacy plaintext values are compared in
    constant time. Callers are responsible for upgrading plaintext on success.
    """
    if is_password_hashed(stored_password):
        return verify_password(plain_password, stored_password)
    return hmac.compare_digest(
        plain_password.encode("utf-8"), stored_password.encode("utf-8")
    )


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    result = hashed.decode("utf-8")
    assert isinstance(result, str)
    return result
