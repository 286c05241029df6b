"""
Access token expiry check. Reads the JWT exp claim without verifying the
signature: this is a client-side heuristic, the server stays the authority.
"""
import logging
import time

import jwt

from api_client.config import TOKEN_LOOKAHEAD_SECONDS

logger = logging.getLogger(__name__)


def token_expiry(access_token: str) -> float | None:
    """Return the token's exp claim (Unix timestamp), or None if it cannot be read."""
    try:
        claims = jwt.decode(
            access_token,
            options={"verify_signature": False, "verify_exp": False},
            algorithms=["HS256", "RS256", "ES256"],
        )
    except jwt.PyJWTError as e:
        logger.debug("Access token not decodable: %s", e)
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


def is_expiring_soon(
    access_token: str,
    lookahead_seconds: float = TOKEN_LOOKAHEAD_SECONDS,
    now: float | None = None,
) -> bool:
    """
    True if the token is expired or expires within lookahead_seconds.
    Undecodable tokens count as not expiring; a 401 from the server catches them.
    """
    expiry = token_expiry(access_token)
    if expiry is None:
        return False
    if now is None:
        now = time.time()
    return expiry - now <= lookahead_seconds
