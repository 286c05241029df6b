"""
Shared fixtures for api_client tests: a scripted fake API served through
httpx.MockTransport, and a fully wired client around it.
"""
import asyncio
import itertools
import time

import httpx
import jwt
import pytest

from api_client.credential_store import CredentialPair, CredentialStore
from api_client.dispatcher import RequestDispatcher
from api_client.refresh import RefreshCoordinator
from api_client.session import Navigator, SessionInvalidator, UserCache

BASE_URL = "http://testserver/api"
REFRESH_URL_PATH = "/api/auth/refresh"
TEST_SECRET = "test-secret-for-client-tests-32-bytes"

_jti = itertools.count(1)


def make_token(expires_in: float, sub: str = "1") -> str:
    """Signed JWT expiring expires_in seconds from now (negative = already expired)."""
    now = int(time.time())
    payload = {"sub": sub, "iat": now, "exp": int(now + expires_in), "jti": str(next(_jti))}
    return jwt.encode(payload, TEST_SECRET, algorithm="HS256")


class FakeApi:
    """Scripted API. Accepts bearer tokens in valid_tokens; counts every call."""

    def __init__(self):
        self.valid_tokens: set[str] = set()
        self.reject_all = False
        self.fixed_status: int | None = None
        self.refresh_status = 200
        self.refresh_body: dict | None = None
        self.rotate_refresh_token = True
        self.refresh_gate: asyncio.Event | None = None
        self.refresh_calls = 0
        self.refresh_bodies: list[bytes] = []
        self.requests: list[httpx.Request] = []
        self.issued: list[str] = []

    def bearer(self, request: httpx.Request) -> str | None:
        value = request.headers.get("Authorization")
        if not value or not value.startswith("Bearer "):
            return None
        return value[len("Bearer "):]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == REFRESH_URL_PATH:
            return await self._refresh(request)
        self.requests.append(request)
        # Let concurrent requests interleave
        await asyncio.sleep(0)
        if self.fixed_status is not None:
            return httpx.Response(self.fixed_status, json={"detail": "scripted"})
        token = self.bearer(request)
        if self.reject_all or token not in self.valid_tokens:
            return httpx.Response(401, json={"detail": "Unauthorized"})
        return httpx.Response(200, json={"path": request.url.path, "ok": True})

    async def _refresh(self, request: httpx.Request) -> httpx.Response:
        self.refresh_calls += 1
        self.refresh_bodies.append(request.content)
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        else:
            await asyncio.sleep(0.01)
        if self.refresh_status != 200:
            return httpx.Response(self.refresh_status, json={"detail": "invalid_grant"})
        if self.refresh_body is not None:
            return httpx.Response(200, json=self.refresh_body)
        access_token = make_token(600)
        self.valid_tokens.add(access_token)
        self.issued.append(access_token)
        body = {"access_token": access_token}
        if self.rotate_refresh_token:
            body["refresh_token"] = f"rt-{self.refresh_calls}"
        return httpx.Response(200, json=body)


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def http(fake_api):
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(fake_api.handler), timeout=5.0)


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path / "credentials.json")


@pytest.fixture
def navigations():
    return []


@pytest.fixture
def navigator(navigations):
    return Navigator(current_path="/dashboard", on_navigate=navigations.append)


@pytest.fixture
def user_cache():
    return UserCache()


@pytest.fixture
def invalidator(store, user_cache, navigator):
    return SessionInvalidator(store, user_cache, navigator, sign_in_path="/login")


@pytest.fixture
def coordinator(store, http, invalidator):
    return RefreshCoordinator(store, http, invalidator)


@pytest.fixture
def dispatcher(http, store, coordinator, invalidator):
    return RequestDispatcher(http, store, coordinator, invalidator, lookahead_seconds=60)


@pytest.fixture
def signed_in(store, fake_api):
    """Store a valid pair the fake API accepts; returns it."""

    def _sign_in(expires_in: float = 600, accepted: bool = True) -> CredentialPair:
        pair = CredentialPair(access_token=make_token(expires_in), refresh_token="rt-initial")
        if accepted:
            fake_api.valid_tokens.add(pair.access_token)
        store.set(pair)
        return pair

    return _sign_in
