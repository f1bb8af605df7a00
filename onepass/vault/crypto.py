"""
Vault Crypto — the encryption service the local cache is sealed with.

Two interchangeable sealers are provided:
- ``GpgSealer``: delegates to ``gpg``; the recipient is a public key id and
  decryption goes through gpg-agent (which may prompt via pinentry).
- ``KeyfileSealer``: AES-256-GCM over a key derived with
  HKDF(key_vN, "onepass-seal-vN"); sealed format is
  [key_id 2B uint16 BE][nonce 12B][payload + GCM tag 16B].

Security Note:
    Never log plaintext or ciphertext values. Only key ids and paths.
"""
import os
import re
import base64
import struct
import secrets
import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..exceptions import ConfigError, SealError

logger = logging.getLogger("onepass.vault")

NONCE_SIZE = 12  # 96-bit nonce
KEY_ID_SIZE = 2  # uint16 big-endian
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16

_KEY_LINE_PATTERN = re.compile(r"^v(\d+)$")
_RECIPIENT_PATTERN = re.compile(r"^v?(\d+)$")


class Sealer(ABC):
    """Encrypt-for-recipient / decrypt-for-self service."""

    name: str = "base"

    @abstractmethod
    def seal(self, recipient: str, plaintext: bytes) -> bytes:
        """Encrypt ``plaintext`` so only ``recipient`` can open it."""

    @abstractmethod
    def unseal(self, ciphertext: bytes) -> bytes:
        """Decrypt a payload sealed to one of our own keys."""

    @abstractmethod
    def revoke_cached_key(self) -> None:
        """Forget any cached decryption-key material."""


# ---------------------------------------------------------------------------
# gpg
# ---------------------------------------------------------------------------

class GpgSealer(Sealer):
    """Sealer backed by the ``gpg`` command line."""

    name = "gpg"

    def __init__(self, gpg_path: str = "gpg", agent_path: Optional[str] = None):
        self.gpg_path = gpg_path
        # gpg-connect-agent ships beside gpg
        self.agent_path = agent_path or str(Path(gpg_path).with_name("gpg-connect-agent"))

    def _run(self, args: list[str], data: bytes, what: str) -> bytes:
        try:
            result = subprocess.run(
                args,
                input=data,
                capture_output=True,
                check=False,
            )
        except OSError as err:
            raise SealError(f"cannot run {args[0]}: {err}") from err
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", "replace").strip()
            raise SealError(f"gpg {what} failed: {stderr or 'exit %d' % result.returncode}")
        return result.stdout

    def seal(self, recipient: str, plaintext: bytes) -> bytes:
        return self._run(
            [
                self.gpg_path, "--batch", "--yes", "--quiet",
                "--encrypt", "--recipient", recipient,
                "--output", "-",
            ],
            plaintext,
            "encrypt",
        )

    def unseal(self, ciphertext: bytes) -> bytes:
        # no --batch: gpg-agent may need pinentry to unlock the key
        return self._run(
            [self.gpg_path, "--quiet", "--decrypt", "--output", "-"],
            ciphertext,
            "decrypt",
        )

    def revoke_cached_key(self) -> None:
        """Ask gpg-agent to drop every cached passphrase."""
        try:
            subprocess.run(
                [self.agent_path, "reloadagent", "/bye"],
                capture_output=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as err:
            raise SealError(f"cannot reload gpg-agent: {err}") from err
        logger.debug("gpg-agent reloaded, cached passphrases dropped")


# ---------------------------------------------------------------------------
# Keyfile (AES-GCM)
# ---------------------------------------------------------------------------

def generate_key() -> str:
    """Generate a random 32-byte key and return it as a base64 string.

    Operators write it to the key file as ``v1=<key>``.
    """
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode("ascii")


def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (raw key file bytes).
        context: Context string for domain separation (e.g. "onepass-seal-v1").

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # deterministic derivation
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


def load_keys(path: Path) -> dict[int, bytes]:
    """Load ``v{N}=<base64>`` key lines from ``path``.

    Returns:
        Mapping of key version (int) to raw 32-byte key.

    Raises:
        ConfigError: If the file is missing, empty, or a key is malformed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigError(f"cannot read key file {path}: {err}") from err
    keys: dict[int, bytes] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        name, _, value = line.partition("=")
        match = _KEY_LINE_PATTERN.match(name.strip())
        if not match:
            raise ConfigError(f"{path}: malformed key line {name.strip()!r}")
        try:
            key_bytes = base64.b64decode(value.strip(), validate=True)
        except ValueError as err:
            raise ConfigError(f"{path}: key {name.strip()} is not base64") from err
        if len(key_bytes) != KEY_LENGTH:
            raise ConfigError(
                f"{path}: key {name.strip()} must decode to exactly "
                f"{KEY_LENGTH} bytes, got {len(key_bytes)}"
            )
        keys[int(match.group(1))] = key_bytes
    if not keys:
        raise ConfigError(f"no keys found in {path}; add a line v1=<base64 key>")
    logger.debug("Loaded %d key version(s): %s", len(keys), sorted(keys))
    return keys


def parse_recipient(recipient: str) -> int:
    """Map a recipient id (``"v2"`` or ``"2"``) to a key version."""
    match = _RECIPIENT_PATTERN.match(recipient.strip())
    if not match:
        raise SealError(f"keyfile recipient must look like v<N>, got {recipient!r}")
    return int(match.group(1))


class KeyfileSealer(Sealer):
    """AES-GCM sealer over versioned keys kept in a local key file."""

    name = "keyfile"

    def __init__(self, path: Path):
        self.path = path
        self._keys: Optional[dict[int, bytes]] = None

    @property
    def keys(self) -> dict[int, bytes]:
        if self._keys is None:
            self._keys = load_keys(self.path)
        return self._keys

    def seal(self, recipient: str, plaintext: bytes) -> bytes:
        key_id = parse_recipient(recipient)
        if key_id not in self.keys:
            raise SealError(f"key version {key_id} not found in {self.path}")
        derived = derive_key(self.keys[key_id], f"onepass-seal-v{key_id}")
        nonce = os.urandom(NONCE_SIZE)
        ct = AESGCM(derived).encrypt(nonce, plaintext, None)
        return struct.pack("!H", key_id) + nonce + ct

    def unseal(self, ciphertext: bytes) -> bytes:
        _min = KEY_ID_SIZE + NONCE_SIZE + TAG_SIZE
        if len(ciphertext) < _min:
            raise SealError(
                f"sealed payload too short: {len(ciphertext)} bytes "
                f"(minimum {_min})"
            )
        key_id = struct.unpack("!H", ciphertext[:KEY_ID_SIZE])[0]
        if key_id not in self.keys:
            raise SealError(f"key version {key_id} not found in {self.path}")
        derived = derive_key(self.keys[key_id], f"onepass-seal-v{key_id}")
        nonce = ciphertext[KEY_ID_SIZE:KEY_ID_SIZE + NONCE_SIZE]
        try:
            return AESGCM(derived).decrypt(nonce, ciphertext[KEY_ID_SIZE + NONCE_SIZE:], None)
        except InvalidTag as err:
            raise SealError("sealed payload failed authentication") from err

    def revoke_cached_key(self) -> None:
        self._keys = None
        logger.debug("Dropped cached keys from %s", self.path)


def get_sealer(config: Any) -> Sealer:
    """Build the sealer named by ``config.sealer``."""
    if config.sealer == "keyfile":
        return KeyfileSealer(config.key_path)
    return GpgSealer(config.gpg_path, config.gpg_agent_path)


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> bytes:
    """Serialize a JSON-compatible value to bytes for sealing."""
    return orjson.dumps(value)


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by ``serialize_value``."""
    return orjson.loads(data)
