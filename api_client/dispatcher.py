"""
Request dispatcher: the single entry point for outbound API calls.

Attaches the bearer token, refreshes it proactively when it is about to expire,
and on a 401 refreshes once and retries once. Each call walks an explicit state
machine so a request is never sent more than twice.
"""
import enum
import logging
from typing import Any

import httpx

from api_client.config import TOKEN_LOOKAHEAD_SECONDS
from api_client.credential_store import CredentialStore
from api_client.errors import RefreshError, SessionChangedError, SessionExpiredError
from api_client.expiry import is_expiring_soon
from api_client.refresh import RefreshCoordinator
from api_client.session import SessionInvalidator

logger = logging.getLogger(__name__)


class RequestState(enum.Enum):
    INITIAL = "initial"
    AWAITING_REFRESH = "awaiting_refresh"
    RETRIED = "retried"
    DONE = "done"
    FAILED = "failed"


class RequestDispatcher:
    def __init__(
        self,
        http: httpx.AsyncClient,
        store: CredentialStore,
        coordinator: RefreshCoordinator,
        invalidator: SessionInvalidator,
        lookahead_seconds: float = TOKEN_LOOKAHEAD_SECONDS,
    ):
        self.http = http
        self.store = store
        self.coordinator = coordinator
        self.invalidator = invalidator
        self.lookahead_seconds = lookahead_seconds

    async def dispatch(
        self,
        method: str,
        url: str,
        *,
        token: str | None = None,
        auth: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request and return the response untouched unless it is a 401.

        token: explicit bearer used verbatim (bootstrap calls); skips the expiry
        check and the refresh-and-retry path.
        auth=False: no Authorization header and no refresh-and-retry (login,
        the refresh endpoint itself).

        Raises SessionExpiredError when a 401 cannot be recovered.
        """
        if not auth:
            return await self._send(method, url, None, kwargs)
        if token is not None:
            return await self._send(method, url, token, kwargs)

        state = RequestState.INITIAL
        access_token = await self._resolve_access_token()
        response: httpx.Response | None = None

        while state not in (RequestState.DONE, RequestState.FAILED):
            if state is RequestState.AWAITING_REFRESH:
                access_token = await self._recover(access_token)
                state = RequestState.FAILED if access_token is None else RequestState.RETRIED
                continue
            if state is RequestState.RETRIED:
                logger.debug("%s %s: retrying with refreshed token", method, url)
            response = await self._send(method, url, access_token, kwargs)
            if response.status_code != 401:
                state = RequestState.DONE
            elif state is RequestState.INITIAL:
                state = RequestState.AWAITING_REFRESH
            else:
                # A second 401 is final
                state = RequestState.FAILED

        if state is RequestState.FAILED:
            logger.warning("%s %s: unauthorized, request %s", method, url, state.value)
            self.invalidator.invalidate()
            raise SessionExpiredError()
        logger.debug("%s %s -> %d (%s)", method, url, response.status_code, state.value)
        return response

    async def _recover(self, sent_token: str | None) -> str | None:
        """New access token after a 401, or None when the session cannot be renewed."""
        pair = self.store.get()
        if pair is None:
            return None
        if sent_token is not None and pair.access_token != sent_token:
            # Another request already rotated the credential
            return pair.access_token
        try:
            return await self.coordinator.ensure_fresh_token()
        except SessionChangedError:
            # Signed out or signed in again while the exchange ran
            current = self.store.get()
            return current.access_token if current is not None else None
        except RefreshError:
            return None

    async def _resolve_access_token(self) -> str | None:
        pair = self.store.get()
        if pair is None:
            return None
        if not is_expiring_soon(pair.access_token, self.lookahead_seconds):
            return pair.access_token
        try:
            return await self.coordinator.ensure_fresh_token()
        except SessionChangedError:
            current = self.store.get()
            return current.access_token if current is not None else None
        except RefreshError:
            # Fail open: send the stale token and let the server decide
            return pair.access_token

    async def _send(
        self,
        method: str,
        url: str,
        access_token: str | None,
        kwargs: dict[str, Any],
    ) -> httpx.Response:
        headers = dict(kwargs.get("headers") or {})
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        request_kwargs = {**kwargs, "headers": headers}
        logger.debug("%s %s", method, url)
        return await self.http.request(method, url, **request_kwargs)
