"""
API facade over the request dispatcher: query building, response decoding,
and the auth calls (login, me, logout) the host application uses.
"""
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from api_client.config import (
    API_BASE_URL,
    API_SERVER_URL,
    API_TIMEOUT_SECONDS,
    CREDENTIALS_PATH,
    HEALTH_PATH,
    LOGIN_PATH,
    ME_PATH,
    SIGN_IN_PATH,
    TOKEN_LOOKAHEAD_SECONDS,
)
from api_client.credential_store import CredentialPair, CredentialStore
from api_client.dispatcher import RequestDispatcher
from api_client.errors import ApiError
from api_client.refresh import RefreshCoordinator
from api_client.session import Navigator, SessionInvalidator, UserCache

logger = logging.getLogger(__name__)

Query = dict[str, str | int | float | bool | None]


def build_query(query: Query | None) -> dict[str, str]:
    """Drop None values; render booleans as true/false."""
    if not query:
        return {}
    params = {}
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = str(value)
    return params


def parse_response(response: httpx.Response, as_bytes: bool = False) -> Any:
    """
    Decode a response body. Raises ApiError on non-2xx.
    Empty body -> None; JSON when it parses, else the raw text.
    """
    if not response.is_success:
        message = response.text or f"Request failed with status {response.status_code}"
        logger.error("HTTP %s %s: %s", response.status_code, response.reason_phrase, message)
        raise ApiError(response.status_code, message)
    if as_bytes:
        return response.content
    text = response.text
    if not text:
        return None
    try:
        return response.json()
    except ValueError:
        logger.warning("Response from %s is not JSON", response.request.url)
        return text


def media_url(path: str | None, server_url: str = API_SERVER_URL) -> str:
    """Absolute URL for a media path returned by the API."""
    if not path:
        return ""
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{server_url}{path}"


class ApiClient:
    """Authenticated JSON API client.

    All calls go through RequestDispatcher, so every request gets the bearer
    token, proactive refresh, and the single 401 retry.
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        user_cache: UserCache | None = None,
    ):
        self.dispatcher = dispatcher
        self.user_cache = user_cache or dispatcher.invalidator.user_cache

    @property
    def store(self) -> CredentialStore:
        return self.dispatcher.store

    @property
    def http(self) -> httpx.AsyncClient:
        return self.dispatcher.http

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Query | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        token: str | None = None,
        auth: bool = True,
        as_bytes: bool = False,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        params = build_query(query)
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data
        if files is not None:
            kwargs["files"] = files
        logger.debug("[HTTP] %s %s", method, path)
        try:
            response = await self.dispatcher.dispatch(method, path, token=token, auth=auth, **kwargs)
        except httpx.HTTPError as e:
            logger.error("[HTTP] Request failed for %s %s: %s", method, path, e)
            raise
        return parse_response(response, as_bytes=as_bytes)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, json=body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def post_form(
        self,
        path: str,
        files: dict[str, Any],
        data: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Multipart upload; httpx sets the Content-Type boundary."""
        return await self.request("POST", path, files=files, data=data, **kwargs)

    async def health(self) -> Any:
        return await self.get(HEALTH_PATH, auth=False)

    async def login(self, username: str, password: str) -> CredentialPair:
        """Exchange username/password for a credential pair and store it."""
        logger.info("Login attempt for user %s", username)
        data = await self.post(LOGIN_PATH, {"username": username, "password": password}, auth=False)
        pair = CredentialPair(access_token=data["access_token"], refresh_token=data["refresh_token"])
        self.store.set(pair)
        self.user_cache.clear()
        logger.info("Login succeeded for user %s", username)
        return pair

    async def me(self, token: str | None = None) -> dict[str, Any]:
        """Fetch the signed-in user's profile and cache it."""
        user = await self.get(ME_PATH, token=token)
        self.user_cache.set(user)
        return user

    def logout(self) -> None:
        self.dispatcher.invalidator.invalidate()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def create_api_client(
    base_url: str = API_BASE_URL,
    *,
    credentials_path: Path | str | None = CREDENTIALS_PATH,
    timeout: float = API_TIMEOUT_SECONDS,
    lookahead_seconds: float = TOKEN_LOOKAHEAD_SECONDS,
    navigator: Navigator | None = None,
    on_navigate: Callable[[str], None] | None = None,
    sign_in_path: str = SIGN_IN_PATH,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ApiClient:
    """Wire store, invalidator, refresh coordinator and dispatcher around one httpx client."""
    http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
    store = CredentialStore(credentials_path)
    if navigator is None:
        navigator = Navigator(on_navigate=on_navigate)
    invalidator = SessionInvalidator(store, UserCache(), navigator, sign_in_path=sign_in_path)
    coordinator = RefreshCoordinator(store, http, invalidator)
    dispatcher = RequestDispatcher(http, store, coordinator, invalidator, lookahead_seconds=lookahead_seconds)
    return ApiClient(dispatcher)
