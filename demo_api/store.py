"""
In-memory users and refresh tokens for the demo API.
Refresh tokens are single-use: redeeming one revokes it. TTL to avoid unbounded growth.
"""
import itertools
import logging
import secrets
import threading
import time
from dataclasses import dataclass

import bcrypt

from demo_api.config import REFRESH_TOKEN_EXPIRES, SEED_PASSWORD, SEED_USER

logger = logging.getLogger(__name__)


@dataclass
class User:
    id: int
    username: str
    password_hash: str
    user_type: str = "unit"


@dataclass
class IssuedRefreshToken:
    user_id: int
    expires_at: float

    def expired(self) -> bool:
        return time.time() >= self.expires_at


_users: dict[str, User] = {}
_refresh_tokens: dict[str, IssuedRefreshToken] = {}
_lock = threading.Lock()
_user_ids = itertools.count(1)
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes; newer releases raise on longer input
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(_password_bytes(password), salt).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain), hashed.encode("ascii"))


def add_user(username: str, password: str, user_type: str = "unit") -> User:
    """Create or replace a user. Re-adding a username keeps its id so issued tokens still resolve."""
    password_hash = hash_password(password)
    with _lock:
        existing = _users.get(username)
        user_id = existing.id if existing is not None else next(_user_ids)
        user = User(id=user_id, username=username, password_hash=password_hash, user_type=user_type)
        _users[username] = user
    logger.info("Added user: %s", username)
    return user


def authenticate(username: str, password: str) -> User | None:
    user = _users.get(username)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def get_user(user_id: int) -> User | None:
    for user in _users.values():
        if user.id == user_id:
            return user
    return None


def issue_refresh_token(user_id: int, expires_in: int = REFRESH_TOKEN_EXPIRES) -> str:
    _clean_expired()
    value = secrets.token_urlsafe(48)
    with _lock:
        _refresh_tokens[value] = IssuedRefreshToken(user_id=user_id, expires_at=time.time() + expires_in)
    return value


def redeem_refresh_token(value: str) -> int | None:
    """Consume a refresh token. Returns the user id, or None if unknown, used or expired."""
    with _lock:
        issued = _refresh_tokens.pop(value, None)
    if issued is None or issued.expired():
        return None
    return issued.user_id


def seed_from_env() -> None:
    """Create one user from env if DEMO_SEED_USER and DEMO_SEED_PASSWORD are set."""
    if SEED_USER and SEED_PASSWORD and SEED_USER not in _users:
        add_user(SEED_USER, SEED_PASSWORD)


def reset() -> None:
    global _user_ids
    with _lock:
        _user_ids = itertools.count(1)
        _users.clear()
        _refresh_tokens.clear()


def _clean_expired() -> None:
    now = time.time()
    with _lock:
        expired = [t for t, issued in _refresh_tokens.items() if issued.expires_at <= now]
        for t in expired:
            del _refresh_tokens[t]
