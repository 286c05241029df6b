"""
Refresh coordinator: exchanges the refresh token at POST /auth/refresh with at
most one exchange in flight per instance (single-flight).

Loop-bound. The check for an outstanding exchange and the creation of a new one
happen with no await in between, which is atomic on a single asyncio loop. Do
not share an instance across OS threads without a lock around that step.
"""
import asyncio
import logging

import httpx

from api_client.config import REFRESH_PATH
from api_client.credential_store import CredentialPair, CredentialStore
from api_client.errors import RefreshError, SessionChangedError
from api_client.session import SessionInvalidator

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Single-flight refresh of the access token.

    Every caller that arrives while an exchange is outstanding awaits that same
    exchange and receives the same access token or the same RefreshError.
    """

    def __init__(
        self,
        store: CredentialStore,
        http: httpx.AsyncClient,
        invalidator: SessionInvalidator | None = None,
        refresh_path: str = REFRESH_PATH,
    ):
        self.store = store
        self.http = http
        self.invalidator = invalidator
        self.refresh_path = refresh_path
        self._pending: asyncio.Task[str] | None = None

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    async def ensure_fresh_token(self) -> str:
        """Return a newly issued access token, joining any exchange already in flight."""
        if self._pending is None:
            self._pending = asyncio.create_task(self._run_exchange())
        # Shield: a cancelled waiter must not cancel the exchange others share
        return await asyncio.shield(self._pending)

    async def _run_exchange(self) -> str:
        pair = self.store.get()
        try:
            return await self._exchange(pair)
        except SessionChangedError as e:
            logger.info("Token refresh discarded: %s", e)
            raise
        except RefreshError as e:
            if self.store.get() != pair:
                # Logout or a new login happened meanwhile; that session is not ours to end
                logger.info("Token refresh failed after session changed: %s", e)
                raise SessionChangedError(str(e), status_code=e.status_code) from e
            logger.warning("Token refresh failed: %s", e)
            if self.invalidator is not None:
                self.invalidator.invalidate()
            raise
        finally:
            self._pending = None

    async def _exchange(self, pair: CredentialPair | None) -> str:
        if pair is None or not pair.refresh_token:
            raise RefreshError("No refresh token available")

        try:
            r = await self.http.post(
                self.refresh_path,
                json={"refresh_token": pair.refresh_token},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise RefreshError(f"Refresh request failed: {e}") from e

        if not r.is_success:
            raise RefreshError(f"Refresh rejected with status {r.status_code}", status_code=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise RefreshError("Refresh response is not JSON", status_code=r.status_code) from e
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise RefreshError("Refresh response has no access_token", status_code=r.status_code)

        # Server may rotate the refresh token; keep the old one when it does not
        refresh_token = data.get("refresh_token") or pair.refresh_token
        if self.store.get() != pair:
            raise SessionChangedError("Session changed during refresh", status_code=r.status_code)
        self.store.set(CredentialPair(access_token=access_token, refresh_token=refresh_token))
        logger.info("Access token refreshed")
        return access_token
