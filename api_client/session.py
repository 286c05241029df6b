"""
Session state shared with the host application: the cached current user, the
navigation primitive, and the invalidator that forces a return to sign-in.
"""
import logging
from collections.abc import Callable
from typing import Any

from api_client.config import SIGN_IN_PATH
from api_client.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class UserCache:
    """In-memory cache of the signed-in user's profile (GET /auth/me)."""

    def __init__(self):
        self._user: dict[str, Any] | None = None

    def get(self) -> dict[str, Any] | None:
        return self._user

    def set(self, user: dict[str, Any]) -> None:
        self._user = user

    def clear(self) -> None:
        self._user = None


class Navigator:
    """Tracks the host application's current path and moves it on request.

    The host updates current_path on every route change; on_navigate performs
    the actual navigation (redirect, route push, etc.).
    """

    def __init__(self, current_path: str = "/", on_navigate: Callable[[str], None] | None = None):
        self.current_path = current_path
        self._on_navigate = on_navigate

    def go(self, path: str) -> None:
        self.current_path = path
        if self._on_navigate is not None:
            self._on_navigate(path)


class SessionInvalidator:
    """Wipes credentials and the cached user, then sends the host to sign-in."""

    def __init__(
        self,
        store: CredentialStore,
        user_cache: UserCache | None = None,
        navigator: Navigator | None = None,
        sign_in_path: str = SIGN_IN_PATH,
    ):
        self.store = store
        self.user_cache = user_cache or UserCache()
        self.navigator = navigator
        self.sign_in_path = sign_in_path

    def invalidate(self) -> None:
        self.store.clear()
        self.user_cache.clear()
        if self.navigator is None:
            return
        # Already on the entry point: navigating again would loop
        if self.navigator.current_path == self.sign_in_path:
            return
        logger.info("Session invalidated; navigating to %s", self.sign_in_path)
        self.navigator.go(self.sign_in_path)
