"""
Demo API server. Issues and rotates tokens for the API client and exposes a
protected /auth/me route. Routes live under /api; port 7000 matches the
client's default API_BASE_URL.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException, status
from pydantic import BaseModel

from demo_api.auth import RequireAuth, issue_access_token
from demo_api.config import ACCESS_TOKEN_EXPIRES, API_PREFIX
from demo_api.store import authenticate, get_user, issue_refresh_token, redeem_refresh_token, seed_from_env

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    seed_from_env()
    yield


app = FastAPI(title="Demo API", version="0.1.0", lifespan=lifespan)
router = APIRouter(prefix=API_PREFIX)


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


def _token_response(user_id: int) -> dict:
    return {
        "access_token": issue_access_token(user_id),
        "refresh_token": issue_refresh_token(user_id),
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRES,
    }


@router.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "demo_api"}


@router.get("/public")
def public():
    """Public endpoint; no authentication required."""
    return {"message": "Public data", "access": "anonymous"}


@router.post("/auth/login")
def login(body: LoginRequest):
    user = authenticate(body.username, body.password)
    if user is None:
        logger.info("login failed for username=%s", body.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_credentials", "error_description": "Invalid username or password"},
        )
    logger.info("login ok for sub=%s", user.id)
    return _token_response(user.id)


@router.post("/auth/refresh")
def refresh(body: RefreshRequest):
    """Redeem a refresh token for a new pair; the old refresh token is revoked."""
    user_id = redeem_refresh_token(body.refresh_token)
    if user_id is None or get_user(user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_grant", "error_description": "Invalid, used or expired refresh token"},
        )
    logger.info("refresh ok for sub=%s (refresh token rotated)", user_id)
    return _token_response(user_id)


@router.get("/auth/me")
def me(claims: dict = RequireAuth):
    """Returns the caller's profile from the access token's sub."""
    user = get_user(int(claims["sub"]))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_token", "error_description": "Unknown subject"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"id": user.id, "username": user.username, "user_type": user.user_type}


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "demo_api.main:app",
        host="127.0.0.1",
        port=7000,
        reload=True,
    )
