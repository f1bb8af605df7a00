"""
1Password CLI client — the remote vault operations.

Requires the ``op`` command line (v1 command set)::

    op signin <subdomain> <email> <secret-key> --output=raw   (password on stdin)
    op list items --session=<token>
    op get item <uuid> --session=<token>
    op get totp <uuid> --session=<token>

Every failure is raised as a typed error carrying op's stderr; output is
never inspected for sentinel strings.
"""
import logging
import subprocess
from typing import Any, Optional

import orjson

from .exceptions import AuthError, FetchError

logger = logging.getLogger("onepass.remote")


def validate_uuid(uuid: str) -> str:
    """Reject uuids that cannot be item identifiers (or safe file names)."""
    if not uuid:
        raise FetchError("item uuid cannot be empty")
    if "/" in uuid or "\\" in uuid or uuid in (".", ".."):
        raise FetchError(f"invalid item uuid {uuid!r}")
    return uuid


class OpClient:
    """Thin wrapper over the ``op`` binary."""

    def __init__(self, op_path: str = "op"):
        self.op_path = op_path

    def _run(self, args: list[str], stdin: Optional[str] = None) -> subprocess.CompletedProcess:
        cmd = [self.op_path, *args]
        try:
            return subprocess.run(
                cmd,
                input=stdin,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as err:
            raise FetchError(f"cannot run {self.op_path}: {err}") from err

    @staticmethod
    def _stderr(result: subprocess.CompletedProcess) -> str:
        return (result.stderr or "").strip() or f"exit status {result.returncode}"

    def _fetch(self, args: list[str], token: str, what: str) -> str:
        result = self._run([*args, f"--session={token}"])
        if result.returncode != 0:
            raise FetchError(f"{what} failed: {self._stderr(result)}")
        return result.stdout

    def sign_in(self, master_password: str, email: str, secret_key: str, subdomain: str) -> str:
        """Exchange credentials for a session token.

        Raises:
            AuthError: If op rejects the credentials or returns no token.
        """
        logger.debug("Signing in to %s as %s", subdomain, email)
        try:
            result = self._run(
                ["signin", subdomain, email, secret_key, "--output=raw"],
                stdin=master_password,
            )
        except FetchError as err:
            raise AuthError(str(err)) from err
        token = result.stdout.strip()
        if result.returncode != 0 or not token:
            raise AuthError(f"sign-in to {subdomain} failed: {self._stderr(result)}")
        return token

    def list_items(self, token: str) -> list[dict[str, Any]]:
        """Return the vault's item overviews."""
        output = self._fetch(["list", "items"], token, "listing items")
        try:
            items = orjson.loads(output)
        except orjson.JSONDecodeError as err:
            raise FetchError(f"op returned an unreadable item list: {err}") from err
        if not isinstance(items, list):
            raise FetchError("op returned an item list that is not an array")
        return items

    def get_item(self, uuid: str, token: str) -> dict[str, Any]:
        """Return the full JSON document for ``uuid``."""
        validate_uuid(uuid)
        output = self._fetch(["get", "item", uuid], token, f"fetching item {uuid}")
        try:
            item = orjson.loads(output)
        except orjson.JSONDecodeError as err:
            raise FetchError(f"op returned an unreadable item {uuid}: {err}") from err
        if not isinstance(item, dict):
            raise FetchError(f"op returned item {uuid} that is not an object")
        return item

    def get_totp(self, uuid: str, token: str) -> str:
        """Return the current one-time code for ``uuid``."""
        validate_uuid(uuid)
        code = self._fetch(["get", "totp", uuid], token, f"fetching one-time code for {uuid}").strip()
        if not code:
            raise FetchError(f"no one-time code for item {uuid}")
        return code
