"""
End-to-end: the API client against the demo API (in-process via httpx.ASGITransport).
The demo server rotates single-use refresh tokens, so a second concurrent
refresh with the same token would be rejected.
"""
import asyncio

import httpx
import pytest

from api_client.api import create_api_client
from api_client.credential_store import CredentialPair
from api_client.errors import SessionExpiredError
from demo_api import store as demo_store
from demo_api.auth import issue_access_token
from demo_api.main import app


@pytest.fixture(autouse=True)
def demo_users():
    demo_store.reset()
    demo_store.add_user("alice", "alice-pass")
    yield
    demo_store.reset()


@pytest.fixture
def api(tmp_path, navigations):
    return create_api_client(
        "http://testserver/api",
        credentials_path=tmp_path / "credentials.json",
        on_navigate=navigations.append,
        transport=httpx.ASGITransport(app=app),
    )


@pytest.mark.asyncio
async def test_login_then_me_without_refresh(api):
    pair = await api.login("alice", "alice-pass")
    user = await api.me()
    assert user["username"] == "alice"
    assert api.store.get() == pair


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed_and_rotated(api):
    pair = await api.login("alice", "alice-pass")
    expiring = CredentialPair(access_token=issue_access_token(1, expires_in=30), refresh_token=pair.refresh_token)
    api.store.set(expiring)

    user = await api.me()

    assert user["id"] == 1
    current = api.store.get()
    assert current.access_token != expiring.access_token
    assert current.refresh_token != expiring.refresh_token
    # The redeemed refresh token is single-use
    assert demo_store.redeem_refresh_token(expiring.refresh_token) is None


@pytest.mark.asyncio
async def test_concurrent_requests_redeem_refresh_token_once(api):
    pair = await api.login("alice", "alice-pass")
    api.store.set(CredentialPair(access_token=issue_access_token(1, expires_in=10), refresh_token=pair.refresh_token))

    users = await asyncio.gather(*(api.me() for _ in range(5)))

    assert [u["username"] for u in users] == ["alice"] * 5
    assert api.store.get().refresh_token != pair.refresh_token


@pytest.mark.asyncio
async def test_expired_token_recovered_via_refresh(api):
    pair = await api.login("alice", "alice-pass")
    # Server rejects it; expiry check cannot read it, so the 401 path recovers
    api.store.set(CredentialPair(access_token="opaque-garbage", refresh_token=pair.refresh_token))
    user = await api.me()
    assert user["username"] == "alice"


@pytest.mark.asyncio
async def test_revoked_refresh_token_ends_session(api, navigations):
    await api.login("alice", "alice-pass")
    api.store.set(CredentialPair(access_token=issue_access_token(1, expires_in=-60), refresh_token="revoked"))

    with pytest.raises(SessionExpiredError):
        await api.me()

    assert api.store.get() is None
    assert api.user_cache.get() is None
    assert navigations == ["/login"]
