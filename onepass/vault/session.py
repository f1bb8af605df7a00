"""
Session Manager — lifecycle of the vault session token.

The token is sealed to disk and reused while the session file's
last-modified age stays under the TTL (29 minutes, just below the vault's
own 30-minute expiry). Each reuse touches the file, so the window slides
with use. At most one sign-in happens per process.

Security Note:
    Never log the token, the master password or the secret key.
"""
import os
import time
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError

from .store import EncryptedStore
from ..conf import Config
from ..exceptions import ConfigError, StoreError

logger = logging.getLogger("onepass.vault")


class Session(BaseModel):
    """Persisted form of a sign-in."""

    token: str
    created_at: datetime


class SessionManager:
    """Acquires, caches, and forgets the vault session token."""

    def __init__(
        self,
        config: Config,
        store: EncryptedStore,
        remote: Any,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._store = store
        self._remote = remote
        self._clock = clock
        self._token: Optional[str] = None

    @property
    def ttl(self) -> int:
        return self._config.session_ttl

    def session_age(self) -> Optional[float]:
        """Seconds since the session file was last touched, None if absent."""
        try:
            mtime = self._config.session_path.stat().st_mtime
        except FileNotFoundError:
            return None
        return self._clock() - mtime

    def is_stale(self) -> bool:
        age = self.session_age()
        return age is None or age >= self.ttl

    def ensure_session(self, force_refresh: bool = False) -> str:
        """Return a usable token, signing in only when needed.

        Args:
            force_refresh: Sign in again even if a cached session is fresh.

        Returns:
            The session token.
        """
        if self._token is not None:
            return self._token
        if force_refresh or self.is_stale():
            self._token = self.sign_in()
            return self._token

        path = self._config.session_path
        try:
            session = Session.model_validate(self._store.read_value(path))
        except (StoreError, ValidationError) as err:
            logger.info("Cached session unusable (%s), signing in", err)
            self._token = self.sign_in()
            return self._token
        now = self._clock()
        os.utime(path, (now, now))
        logger.debug("Reusing cached session from %s", session.created_at.isoformat())
        self._token = session.token
        return self._token

    def _read_secret(self, path: Path, what: str) -> str:
        if not path.exists():
            raise ConfigError(f"{what} not found at {path}")
        try:
            return self._store.read(path).decode("utf-8").rstrip("\r\n")
        except UnicodeDecodeError as err:
            raise StoreError(f"{what} at {path} is not valid UTF-8") from err

    def sign_in(self) -> str:
        """Sign in with the stored credentials and persist the new session.

        Raises:
            ConfigError: If the sealed master password or secret key is missing.
            StoreError: If either cannot be unsealed or decoded.
            AuthError: If the vault rejects the sign-in (never retried).
        """
        master = self._read_secret(self._config.master_secret_path, "master password")
        secret_key = self._read_secret(self._config.secret_key_path, "secret key")
        token = self._remote.sign_in(
            master, self._config.email, secret_key, self._config.subdomain,
        )
        session = Session(
            token=token,
            created_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )
        self._store.write_value(self._config.session_path, session.model_dump(mode="json"))
        now = self._clock()
        os.utime(self._config.session_path, (now, now))
        logger.info("Signed in to %s as %s", self._config.subdomain, self._config.email)
        return token

    def forget(self) -> None:
        """Remove the persisted session and revoke cached key material.

        Idempotent: a missing session file is not an error.
        """
        self._token = None
        try:
            self._config.session_path.unlink()
            logger.info("Session removed: %s", self._config.session_path)
        except FileNotFoundError:
            logger.debug("No session to remove at %s", self._config.session_path)
        self._store.sealer.revoke_cached_key()
