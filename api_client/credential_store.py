"""
Credential store: the access/refresh token pair, persisted to a JSON file.
Keys are fixed (access_token, refresh_token). Storage failures are logged and
swallowed; the in-memory copy keeps the running process signed in.
"""
import json
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from api_client.config import CREDENTIALS_PATH

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"


@dataclass(frozen=True)
class CredentialPair:
    access_token: str
    refresh_token: str


class CredentialStore:
    """File-backed store for a single credential pair.

    The file is chmod 0600. A file with only one of the two keys is treated as
    empty so a partial pair never reaches callers.
    """

    def __init__(self, path: Path | str | None = CREDENTIALS_PATH):
        self.path = Path(path) if path is not None else None
        self._pair: CredentialPair | None = None
        self._loaded = False

    def set(self, pair: CredentialPair) -> None:
        self._pair = pair
        self._loaded = True
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            data = {ACCESS_TOKEN_KEY: pair.access_token, REFRESH_TOKEN_KEY: pair.refresh_token}
            self.path.write_text(json.dumps(data))
            os.chmod(self.path, stat.S_IRUSR | stat.S_IWUSR)
            logger.info("Saved credentials to %s", self.path)
        except OSError as e:
            logger.warning("Could not persist credentials to %s: %s", self.path, e)

    def get(self) -> CredentialPair | None:
        if not self._loaded:
            self._pair = self._read()
            self._loaded = True
        return self._pair

    def clear(self) -> None:
        self._pair = None
        self._loaded = True
        if self.path is None:
            return
        try:
            self.path.unlink(missing_ok=True)
            logger.info("Cleared credentials at %s", self.path)
        except OSError as e:
            logger.warning("Could not remove credentials at %s: %s", self.path, e)

    def _read(self) -> CredentialPair | None:
        if self.path is None:
            return None
        try:
            if not self.path.exists():
                return None
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning("Failed to load credentials from %s: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            return None
        access_token = data.get(ACCESS_TOKEN_KEY)
        refresh_token = data.get(REFRESH_TOKEN_KEY)
        if not access_token or not refresh_token:
            return None
        return CredentialPair(access_token=access_token, refresh_token=refresh_token)
