"""
Encrypted Store — sealed-blob read/write over filesystem paths.

Every file the cache writes goes through ``EncryptedStore.write``; nothing
is ever written in plaintext. Reads re-invoke the sealer each time, no
decrypted content is kept between calls.
"""
import os
import logging
from pathlib import Path
from typing import Any

from .crypto import Sealer, serialize_value, deserialize_value
from ..exceptions import SealError, StoreError

logger = logging.getLogger("onepass.vault")

FILE_MODE = 0o600
DIR_MODE = 0o700


class EncryptedStore:
    """Seal to ``recipient`` on write, unseal on read."""

    def __init__(self, sealer: Sealer, recipient: str):
        self.sealer = sealer
        self.recipient = recipient

    def write(self, path: Path, plaintext: bytes) -> None:
        """Seal ``plaintext`` and write it to ``path`` (owner-only perms).

        Raises:
            StoreError: On seal or I/O failure.
        """
        sealed = self.sealer.seal(self.recipient, plaintext)
        try:
            path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
            with os.fdopen(fd, "wb") as fp:
                fp.write(sealed)
            # O_CREAT mode does not apply to an existing file
            os.chmod(path, FILE_MODE)
        except OSError as err:
            raise StoreError(f"cannot write {path}: {err}") from err
        logger.debug("Sealed %s for %s", path, self.recipient)

    def read(self, path: Path) -> bytes:
        """Read and unseal ``path``.

        Raises:
            StoreError: If the file is missing, unreadable, or unseal fails.
        """
        try:
            sealed = path.read_bytes()
        except OSError as err:
            raise StoreError(f"cannot read {path}: {err}") from err
        try:
            return self.sealer.unseal(sealed)
        except SealError as err:
            raise StoreError(f"cannot unseal {path}: {err}") from err

    def write_value(self, path: Path, value: Any) -> None:
        self.write(path, serialize_value(value))

    def read_value(self, path: Path) -> Any:
        data = self.read(path)
        try:
            return deserialize_value(data)
        except ValueError as err:
            raise StoreError(f"{path} does not hold a JSON document") from err
