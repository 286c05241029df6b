"""
Access token issuing and validation for the demo API.
HS256 JWTs carrying sub, iat, exp, jti; bearer dependency for protected routes.
"""
import logging
import secrets
import time
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from demo_api.config import ACCESS_TOKEN_EXPIRES, JWT_ALGORITHM, JWT_SECRET

logger = logging.getLogger(__name__)


def issue_access_token(user_id: int, expires_in: int = ACCESS_TOKEN_EXPIRES) -> str:
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
        "jti": secrets.token_hex(8),
    }
    token = jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM, headers={"typ": "JWT"})
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


security = HTTPBearer(auto_error=False)


def _unauthorized(description: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "invalid_token", "error_description": description},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """The raw token from `Authorization: Bearer ...`; 401 when the header is absent or uses another scheme."""
    if credentials is None:
        raise _unauthorized("Authorization header missing")
    if credentials.scheme.lower() != "bearer":
        raise _unauthorized("Bearer scheme required")
    return credentials.credentials


def verify_access_token(token: str) -> dict:
    """
    Decode a token signed with the demo secret, requiring sub and an unexpired exp.
    Any failure becomes a 401 with error=invalid_token.
    """
    try:
        return jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": True, "require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.PyJWTError as e:
        logger.debug("JWT verification failed: %s", e)
        raise _unauthorized("Token verification failed")


def get_claims(
    token: Annotated[str, Depends(get_bearer_token)],
) -> dict:
    """Claims of the caller's access token, for routes that require a signed-in user."""
    return verify_access_token(token)


RequireAuth = Depends(get_claims)
